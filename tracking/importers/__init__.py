from tracking.importers.csv_importer import KeywordCSVImporter
from tracking.importers.config_importer import TrackingConfigImporter

__all__ = ["KeywordCSVImporter", "TrackingConfigImporter"]
