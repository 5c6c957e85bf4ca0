"""Prompt template variables: ``{name}`` placeholders in template content."""

import re
from typing import List, Mapping, Optional

VARIABLE_PATTERN = re.compile(r"\{(\w+)\}")


def extract_variables(content: str) -> List[str]:
    """Variable names in order of first appearance, without duplicates."""
    if not content:
        return []
    return list(dict.fromkeys(VARIABLE_PATTERN.findall(content)))


def replace_variables(content: str, inputs: Optional[Mapping[str, object]]) -> str:
    """Substitute known variables; placeholders without a value are left as is."""
    if not content or not inputs:
        return content

    def substitute(match: re.Match) -> str:
        value = inputs.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return VARIABLE_PATTERN.sub(substitute, content)


def missing_variables(content: str, inputs: Optional[Mapping[str, object]]) -> List[str]:
    provided = set(inputs or {})
    return [name for name in extract_variables(content) if name not in provided]
