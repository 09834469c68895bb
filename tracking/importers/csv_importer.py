"""
CSV keyword importer
"""

import pandas as pd
from typing import List, Dict, Any, Optional
from pathlib import Path
from pydantic import ValidationError
import logging

from core.exceptions import KeywordImportError
from schemas.tracking import KeywordSpec
from tracking.repository import Repository

logger = logging.getLogger(__name__)

# Accepted header spellings -> KeywordSpec field
COLUMN_ALIASES = {
    "keyword": "keyword",
    "query": "keyword",
    "project": "project_id",
    "project_id": "project_id",
    "project_name": "project_name",
    "priority": "priority",
    "tier": "priority",
    "device": "device",
    "location": "location_code",
    "location_code": "location_code",
    "location_name": "location_name",
    "frequency": "tracking_frequency",
    "tracking_frequency": "tracking_frequency",
    "target": "target_position",
    "target_position": "target_position",
    "volume": "search_volume",
    "search_volume": "search_volume",
    "domain": "domain",
    "site_url": "domain",
}


class KeywordCSVImporter:
    """
    Import tracked keywords from a CSV file.

    Supports:
    - Header normalization and common column aliases
    - Defaults for project, device and location when columns are absent
    - Row-level validation; invalid rows are reported and skipped
    """

    def __init__(
        self,
        repository: Repository,
        default_project_id: Optional[str] = None,
        default_domain: Optional[str] = None
    ):
        self.repository = repository
        self.default_project_id = default_project_id
        self.default_domain = default_domain

    def read_rows(self, file_path: str) -> List[Dict[str, Any]]:
        path = Path(file_path)
        if not path.exists():
            raise KeywordImportError(
                f"CSV file not found: {path}",
                context={"source": str(path)}
            )

        logger.info(f"Reading keywords from {path}")

        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise KeywordImportError(
                f"Could not parse CSV file: {path}",
                context={"source": str(path)},
                original_exception=e
            )

        # Normalize column names (strip whitespace, lowercase)
        df.columns = df.columns.str.strip().str.lower().str.replace(" ", "_")
        df = df.rename(columns={c: COLUMN_ALIASES[c] for c in df.columns if c in COLUMN_ALIASES})
        known = [c for c in df.columns if c in COLUMN_ALIASES.values()]

        return df[known].to_dict(orient="records")

    def to_spec(self, row: Dict[str, Any]) -> KeywordSpec:
        values = {k: v.strip() for k, v in row.items() if isinstance(v, str) and v.strip()}
        values.setdefault("project_id", self.default_project_id)
        if self.default_domain:
            values.setdefault("domain", self.default_domain)
        return KeywordSpec(**values)

    async def import_file(self, file_path: str) -> Dict[str, Any]:
        """
        Validate every row and upsert the valid ones in one transaction.

        Returns:
            Dictionary with imported, updated and invalid counts and the
            row errors (1-based line numbers, header is line 1)
        """
        rows = self.read_rows(file_path)
        specs = []
        errors = []

        for line_number, row in enumerate(rows, start=2):
            try:
                specs.append(self.to_spec(row))
            except ValidationError as e:
                errors.append({
                    "line": line_number,
                    "keyword": row.get("keyword"),
                    "errors": [
                        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                        for err in e.errors()
                    ],
                })
                logger.warning(f"Skipping invalid CSV row {line_number}: {row.get('keyword')!r}")

        counts = await self.repository.import_keywords(specs)

        logger.info(
            f"CSV import finished: {counts['imported']} new, {counts['updated']} updated, "
            f"{len(errors)} invalid"
        )
        return {**counts, "invalid": len(errors), "errors": errors}
