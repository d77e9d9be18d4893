"""
Markdown toolbar for the article editor.

apply_markdown splices markdown syntax into the editor text around the
current selection and returns the new text with the selection to restore.
"""
from dataclasses import dataclass

CODE_BLOCK_SNIPPET = "\n\ndef codeBlock():\n    pass\n\n"

SYNTAXES = (
    "bold",
    "italic",
    "heading",
    "ul",
    "ol",
    "blockquote",
    "code",
    "inlinecode",
    "link",
    "image",
    "paragraph",
)


@dataclass(frozen=True)
class MarkdownEdit:
    value: str
    selection_start: int
    selection_end: int


def _prefix_lines(selected: str, prefix: str) -> str:
    return "\n".join(f"{prefix}{line}" for line in selected.split("\n"))


def apply_markdown(
    value: str, start: int, end: int, syntax: str, multiline: bool = False
) -> MarkdownEdit:
    start = max(0, min(start, len(value)))
    end = max(start, min(end, len(value)))
    if syntax not in SYNTAXES:
        return MarkdownEdit(value, start, end)
    before, selected, after = value[:start], value[start:end], value[end:]

    if syntax == "bold":
        return MarkdownEdit(f"{before}**{selected or 'bold text'}**{after}", start + 2, end + 2)
    if syntax == "italic":
        return MarkdownEdit(f"{before}*{selected or 'italic text'}*{after}", start + 1, end + 1)
    if syntax == "heading":
        return MarkdownEdit(f"{before}# {selected or 'Heading'}{after}", start + 2, end + 2)
    if syntax == "ul":
        if multiline and selected:
            body = "\n".join(f"- {line}" if line else "- " for line in selected.split("\n"))
        else:
            body = f"- {selected or 'List item'}"
        return MarkdownEdit(f"{before}{body}{after}", start + 2, end + 2)
    if syntax == "ol":
        if multiline and selected:
            body = "\n".join(
                f"{number}. {line or 'List item'}"
                for number, line in enumerate(selected.split("\n"), start=1)
            )
        else:
            body = f"1. {selected or 'List item'}"
        return MarkdownEdit(f"{before}{body}{after}", start + 3, end + 3)
    if syntax == "blockquote":
        if multiline and selected:
            body = _prefix_lines(selected, "> ")
        else:
            body = f"> {selected or 'Blockquote'}"
        return MarkdownEdit(f"{before}{body}{after}", start + 2, end + 2)
    if syntax == "code":
        return MarkdownEdit(f"{before}{CODE_BLOCK_SNIPPET}{after}", start + 2, start + 11)
    if syntax == "inlinecode":
        return MarkdownEdit(f"{before}`{selected or 'code'}`{after}", start + 1, end + 1)
    if syntax == "link":
        return MarkdownEdit(f"{before}[{selected or 'link text'}](url){after}", start + 1, end + 9)
    if syntax == "image":
        return MarkdownEdit(
            f"{before}![{selected or 'alt text'}](image-url){after}", start + 2, end + 11
        )
    # paragraph
    return MarkdownEdit(f"{before}\n\n{after}", start + 2, start + 2)
