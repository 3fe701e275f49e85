import pytest

from transcript_sanitizer.config import DEFAULT_CONFIG, config_from_dict
from transcript_sanitizer.patterns import get_catalog

INSTRUCTION = "Please transcribe only the following audio content"

ENVELOPED = "<TRANSCRIPT>\nHello world\n</TRANSCRIPT>"
LEAKED_PROMPT = INSTRUCTION + "\n" + "the cat sat. the cat sat. the cat sat."
NGRAM_LOOP = "We agreed that I went home I went home I went home I went home before dinner."
NGRAM_UNDER_THRESHOLD = "We agreed that I went home I went home I went home before dinner."

LOOPED_SENTENCE = "The meeting will resume after the break."
UNIQUE_PREAMBLE = (
    "Our quarterly review covered hiring plans for the platform group and a short update on the data center move. "
    "Finance asked for revised travel estimates before the end of next month. "
    "Several customers reported slower exports after the last release and support opened an incident. "
    "Engineering believes the regression came from a caching change that shipped without a feature flag. "
)
# one sentence looped 15 times after a unique preamble; the loop is ~60% of the text
SENTENCE_LOOP = UNIQUE_PREAMBLE + " ".join([LOOPED_SENTENCE] * 15)

STRICT_SAFETY = {
    "emergency_fallback_threshold": 0.5,
    "warning_threshold": 0.1,
    "single_cleaner_max_reduction": 0.3,
    "single_pattern_max_reduction": 0.3,
    "repetition_pattern_max_reduction": 0.3,
    "iteration_reduction_limit": 0.3,
}


@pytest.fixture
def catalog():
    return get_catalog(DEFAULT_CONFIG)


@pytest.fixture
def strict_config():
    return config_from_dict({"safety": STRICT_SAFETY})
