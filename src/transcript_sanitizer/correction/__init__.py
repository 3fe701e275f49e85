from .dictionary import CorrectionEntry, CorrectionRule, DictionaryCorrector, load_dictionary

__all__ = ["CorrectionEntry", "CorrectionRule", "DictionaryCorrector", "load_dictionary"]
