from .catalog import PatternCatalog, Rule, get_catalog, validate_config

__all__ = ["PatternCatalog", "Rule", "get_catalog", "validate_config"]
