"""Default cleaning configuration.

Conservative settings: a rule that would remove a large share of a
transcript is left alone rather than trusted. Instruction phrases cover the
transcription prompts used for English, Japanese, Chinese and Korean.
"""

from __future__ import annotations
from .schema import (
    CleaningConfig,
    ContaminationPatterns,
    RepetitionThresholds,
    SafetyThresholds,
    XmlPatternGroups,
)

INSTRUCTION_PATTERNS = (
    "Please transcribe only the following audio content",
    "Do not include this instruction in your output",
    "Record only the speaker's statements accurately",
    "以下の音声内容のみを文字に起こしてください",
    "この指示文は出力に含めないでください",
    "話者の発言内容だけを正確に記録してください",
    "请仅转录以下音频内容",
    "不要包含此指令在输出中",
    "请准确记录说话者的发言内容",
    "다음 음성 내용만 전사해주세요",
    "이 지시사항을 출력에 포함하지 마세요",
    "화자의 발언 내용만 정확히 기록해주세요",
)

XML_PATTERN_GROUPS = XmlPatternGroups(
    complete_xml_tags=(
        r"<TRANSCRIPT\b[^>]*>([\s\S]*?)</TRANSCRIPT>",
        r"<transcript\b[^>]*>([\s\S]*?)</transcript>",
        r"<TRANSCRIPTION\b[^>]*>([\s\S]*?)</TRANSCRIPTION>",
    ),
    sentence_bounded_tags=(
        r"</?TRANSCRIPT\b[^>]*>",
        r"(?i)</?transcript\b[^>]*>",
        r"(?i)</?TRANSCRIPTION\b[^>]*>",
    ),
    line_bounded_tags=(
        r"(?m)^[ \t]*<[A-Za-z][^<>\n]*>[ \t]*$",
        r"(?m)^[ \t]*</[A-Za-z][^<>\n]*>[ \t]*$",
    ),
    standalone_tags=(
        r"<[A-Za-z][^<>\n]*/>",
        r"<(\w+)[^<>\n]*>\s*</\1>",
    ),
)

CONTEXT_PATTERNS = (
    # speaker-only annotations on a line of their own
    r"(?im)^[ \t]*\([^)\n]*speaker[^)\n]*only[^)\n]*\)[ \t]*$",
    r"(?m)^[ \t]*（[^）\n]*話者[^）\n]*のみ[^）\n]*）[ \t]*$",
    r"(?m)^[ \t]*（[^）\n]*说话者[^）\n]*内容[^）\n]*）[ \t]*$",
    r"(?m)^[ \t]*（[^）\n]*화자[^）\n]*발언만[^）\n]*）[ \t]*$",
    # inline speaker-only annotations
    r"(?i)\(speaker content only\)",
    r"（話者の発言のみ）",
    r"（仅说话者内容）",
    r"（화자 발언만）",
    # format / instruction labels
    r"(?im)^[ \t]*output[ \t]+format[ \t]*:?[ \t]*$",
    r"(?m)^[ \t]*(?:出力形式|输出格式|출력[ \t]*형식)[ \t]*[:：][ \t]*$",
    r"(?im)\b(?:output|format|instruction)[ \t]*:[ \t]*$",
    r"(?im)^[ \t]*(?:transcribe|record|speak)[ \t]+only\b.*$",
)

LEADING_BLOCK_LABELS = (
    r"(?i)^output\s*format\s*:?$",
    r"(?i)^format\s*:?$",
    r"^出力形式\s*[:：]?$",
    r"^输出格式\s*[:：]?$",
    r"^출력\s*형식\s*[:：]?$",
    r"(?i)^\(speaker\s+content\s+only\)$",
    r"^（話者の発言のみ）$",
    r"^（仅说话者内容）$",
    r"^（화자\s*발언만）$",
)

DEFAULT_CONFIG = CleaningConfig(
    safety=SafetyThresholds(),
    repetition=RepetitionThresholds(),
    contamination=ContaminationPatterns(
        instruction_patterns=INSTRUCTION_PATTERNS,
        xml_pattern_groups=XML_PATTERN_GROUPS,
        context_patterns=CONTEXT_PATTERNS,
        prompt_snippet_lengths=(20, 30, 40, 50),
        leading_block_labels=LEADING_BLOCK_LABELS,
    ),
)
