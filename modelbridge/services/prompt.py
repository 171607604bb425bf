from typing import Iterable, List, Optional, Sequence

from modelbridge.schemas.content import Content, FileContext


def _render_parts(contents: Iterable[Content]) -> str:
    parts: List[str] = []
    for content in contents:
        for part in content.parts:
            if part.text:
                parts.append(part.text)
            if part.file_data:
                # the core never dereferences file URIs, it only names them
                parts.append(f"[File: {part.file_data.file_uri}]")
    return "\n".join(parts)


def render_context(context: Sequence[FileContext]) -> str:
    blocks = "\n\n".join(f"--- File: {f.path} ---\n{f.content}\n--- End of {f.path} ---" for f in context)
    return f"--- Context Files ({len(context)} files) ---\n{blocks}\n--- End of Context Files ---"


def build_prompt(
    contents: Iterable[Content],
    context: Sequence[FileContext] = (),
    system_instruction: Optional[str] = None,
) -> str:
    sections: List[str] = []
    if system_instruction:
        sections.append(system_instruction)
    if context:
        sections.append(render_context(context))
    sections.append(_render_parts(contents))
    return "\n\n".join(sections)
