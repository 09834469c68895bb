"""
Tracking-config JSON importer.

Expected shape::

    {
      "trackingConfig": {"defaultSettings": {"device": "desktop"}},
      "projects": {
        "acme": {
          "name": "Acme",
          "siteUrl": "sc-domain:acme.com",
          "location": {"code": 2840, "name": "United States"},
          "keywords": {
            "high": [{"keyword": "...", "searchVolume": 100,
                      "targetPosition": 3, "trackingFrequency": "daily"}],
            "medium": [], "low": []
          }
        }
      }
    }
"""

import json
from typing import List, Dict, Any, Optional
from pathlib import Path
from pydantic import ValidationError
import logging

from core.exceptions import KeywordImportError
from models.base import PriorityTier
from schemas.tracking import KeywordSpec
from tracking.repository import Repository

logger = logging.getLogger(__name__)


class TrackingConfigImporter:
    """Import every keyword of one or all projects from a tracking config"""

    def __init__(self, repository: Repository):
        self.repository = repository

    def load(self, file_path: str) -> Dict[str, Any]:
        path = Path(file_path)
        try:
            with path.open(encoding="utf-8") as f:
                config = json.load(f)
        except FileNotFoundError as e:
            raise KeywordImportError(
                f"Tracking config not found: {path}",
                context={"source": str(path)},
                original_exception=e
            )
        except json.JSONDecodeError as e:
            raise KeywordImportError(
                f"Tracking config is not valid JSON: {path}",
                context={"source": str(path), "line": e.lineno},
                original_exception=e
            )

        if not isinstance(config, dict) or not isinstance(config.get("projects"), dict):
            raise KeywordImportError(
                "Tracking config has no 'projects' section",
                context={"source": str(path)}
            )
        return config

    def build_specs(
        self,
        config: Dict[str, Any],
        project_id: Optional[str] = None
    ) -> List[KeywordSpec]:
        """Flatten the config into KeywordSpecs; invalid entries raise"""
        defaults = (config.get("trackingConfig") or {}).get("defaultSettings") or {}
        projects = config["projects"]

        if project_id is not None:
            if project_id not in projects:
                raise KeywordImportError(
                    f"Project '{project_id}' not found in tracking config",
                    context={"project_id": project_id, "available": sorted(projects)}
                )
            projects = {project_id: projects[project_id]}

        specs = []
        for pid, project in projects.items():
            location = project.get("location") or {}
            keywords = project.get("keywords") or {}

            for tier in PriorityTier:
                for entry in keywords.get(tier.value) or []:
                    try:
                        specs.append(KeywordSpec(
                            keyword=entry.get("keyword", ""),
                            project_id=pid,
                            project_name=project.get("name"),
                            priority=tier,
                            device=entry.get("device") or defaults.get("device") or "desktop",
                            location_code=location.get("code") or defaults.get("locationCode") or 2840,
                            location_name=location.get("name"),
                            domain=project.get("siteUrl"),
                            search_volume=entry.get("searchVolume"),
                            target_position=entry.get("targetPosition"),
                            tracking_frequency=entry.get("trackingFrequency"),
                        ))
                    except ValidationError as e:
                        raise KeywordImportError(
                            f"Invalid keyword entry in project '{pid}'",
                            context={
                                "project_id": pid,
                                "priority": tier.value,
                                "keyword": entry.get("keyword"),
                                "field_errors": [err["msg"] for err in e.errors()],
                            },
                            original_exception=e
                        )

        return specs

    async def import_file(
        self,
        file_path: str,
        project_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Import all keywords of the config (or a single project).

        The whole import is validated before anything is written, then
        committed in one transaction.
        """
        config = self.load(file_path)
        specs = self.build_specs(config, project_id)
        counts = await self.repository.import_keywords(specs)

        logger.info(
            f"Tracking config import finished: {counts['imported']} new, "
            f"{counts['updated']} updated"
        )
        return {**counts, "invalid": 0, "errors": []}
