# MDBMerge - Report Query Catalog
# ===============================
"""
Named, date-parameterized report queries.

The catalog is a JSON object mapping report names to SQL templates.
Every template takes exactly two positional parameters, the start and
end dates, written as `?`. The file is loaded and validated once.

Example catalog:
    {
        "Visits per facility": "SELECT hfr_code AS \"Facility\", COUNT(*) AS \"Visits\" FROM tblVisit WHERE VisitDate BETWEEN ? AND ? GROUP BY hfr_code"
    }
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Union

from pydantic import BaseModel, ValidationError, field_validator

from ..errors import ConfigError, UnknownQueryError

logger = logging.getLogger(__name__)

DATE_PARAMETER_COUNT = 2


def count_placeholders(sql: str) -> int:
    """Count `?` placeholders outside quoted spans and SQL comments."""
    count = 0
    i, n = 0, len(sql)
    while i < n:
        ch = sql[i]
        if ch in ("'", '"'):
            end = sql.find(ch, i + 1)
            i = n if end < 0 else end + 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end < 0 else end + 1
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end < 0 else end + 2
        else:
            if ch == "?":
                count += 1
            i += 1
    return count


class QueryCatalog(BaseModel):
    """Report name to SQL template mapping."""
    queries: Dict[str, str]

    @field_validator("queries")
    @classmethod
    def _two_date_parameters(cls, queries: Dict[str, str]) -> Dict[str, str]:
        for name, sql in queries.items():
            if not sql.strip():
                raise ValueError(f"query '{name}' is empty")
            found = count_placeholders(sql)
            if found != DATE_PARAMETER_COUNT:
                raise ValueError(
                    f"query '{name}' must have {DATE_PARAMETER_COUNT} date parameters, found {found}"
                )
        return queries

    @classmethod
    def load(cls, path: Union[str, Path]) -> "QueryCatalog":
        """
        Load a catalog from a JSON file.

        Raises:
            ConfigError: If the file is missing, not JSON, or invalid
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            raise ConfigError(f"Query catalog not found: {path}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Query catalog {path} is not valid JSON: {e}")

        try:
            catalog = cls(queries=raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid query catalog {path}: {e}")

        logger.info(f"Loaded {len(catalog.queries)} report queries from {path}")
        return catalog

    def get(self, name: str) -> str:
        """Get the SQL template of a report."""
        if name not in self.queries:
            raise UnknownQueryError(name)
        return self.queries[name]

    def names(self) -> List[str]:
        return sorted(self.queries)

    def __contains__(self, name: str) -> bool:
        return name in self.queries
