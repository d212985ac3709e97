"""
Dialogue script parser - converts dialogue scripts to node JSON.

Supports a compact text-based format:

```
// comment
# welcome
@Guard [guard_neutral]
Halt! Who goes there?

Speak quickly.
+ auto 1.5

@Narrator
The guard squints at you.
>> I'm a friend. -> friend [sets:met_guard]
>> Password is swordfish. -> gate [requires:knows_password]
-> fallback
!event guard_intro_done

---

# friend
@Guard
Fine, pass.
!end
```

Each paragraph of text becomes one line spoken by the current speaker.
`+ auto [delay]` makes the previous line auto-continue.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from branchtalk.dialogue.models import DialogueNode


class ScriptSyntaxError(ValueError):
    """Malformed dialogue script."""

    def __init__(self, message: str, line_number: int):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


@dataclass
class ParsedLine:
    """A parsed spoken line."""
    speaker: str
    text: str
    portrait: Optional[str] = None
    typewriter_speed: Optional[float] = None
    auto_continue: bool = False
    auto_delay: Optional[float] = None


@dataclass
class ParsedChoice:
    """A parsed choice option."""
    text: str
    target: str
    requires: Optional[str] = None
    sets: Optional[str] = None


@dataclass
class ParsedNode:
    """A parsed dialogue node."""
    id: str
    lines: list[ParsedLine] = field(default_factory=list)
    choices: list[ParsedChoice] = field(default_factory=list)
    next_node: Optional[str] = None
    ends: bool = False
    event: Optional[str] = None


class DialogueScriptParser:
    """
    Parses dialogue scripts from a simple text format.
    """

    # Regex patterns
    NODE_PATTERN = re.compile(r'^#\s*([\w.-]+)\s*$')
    SPEAKER_PATTERN = re.compile(r'^@\s*([^\[\]]+?)\s*(?:\[([\w./-]+)\])?\s*$')
    CHOICE_PATTERN = re.compile(r'^>>\s*(.+?)\s*->\s*([\w.-]+)((?:\s*\[\w+:[\w.-]+\])*)\s*$')
    TAG_PATTERN = re.compile(r'\[(\w+):([\w.-]+)\]')
    NEXT_PATTERN = re.compile(r'^->\s*([\w.-]+)\s*$')
    AUTO_PATTERN = re.compile(r'^\+\s*auto(?:\s+(\d+(?:\.\d+)?))?\s*$')
    DIRECTIVE_PATTERN = re.compile(r'^!\s*(\w+)(?:\s+(.+?))?\s*$')

    def parse_file(self, path: str | Path) -> list[ParsedNode]:
        """Parse a dialogue script file."""
        with open(path, 'r', encoding='utf-8') as f:
            return self.parse_string(f.read())

    def parse_string(self, content: str) -> list[ParsedNode]:
        """Parse a dialogue script string."""
        nodes: list[ParsedNode] = []
        current: Optional[ParsedNode] = None
        speaker = "Narrator"
        portrait: Optional[str] = None
        speed: Optional[float] = None
        paragraph: list[str] = []

        def flush() -> None:
            if current is not None and paragraph:
                current.lines.append(ParsedLine(
                    speaker=speaker,
                    text=' '.join(paragraph),
                    portrait=portrait,
                    typewriter_speed=speed,
                ))
            paragraph.clear()

        for line_number, raw in enumerate(content.splitlines(), start=1):
            line = raw.strip()

            # Blank line ends a paragraph
            if not line:
                flush()
                continue

            # Skip comments
            if line.startswith('//'):
                continue

            # Node separator
            if line == '---':
                flush()
                current = None
                continue

            # Node ID
            match = self.NODE_PATTERN.match(line)
            if match:
                flush()
                current = ParsedNode(id=match.group(1))
                nodes.append(current)
                speaker, portrait, speed = "Narrator", None, None
                continue

            if current is None:
                raise ScriptSyntaxError(f"content outside a node: {line!r}", line_number)

            # Speaker line
            match = self.SPEAKER_PATTERN.match(line)
            if match:
                flush()
                speaker = match.group(1)
                portrait = match.group(2)
                continue

            # Choice
            match = self.CHOICE_PATTERN.match(line)
            if match:
                flush()
                choice = ParsedChoice(text=match.group(1), target=match.group(2))
                for key, value in self.TAG_PATTERN.findall(match.group(3)):
                    if key == 'requires':
                        choice.requires = value
                    elif key == 'sets':
                        choice.sets = value
                    else:
                        raise ScriptSyntaxError(f"unknown choice tag {key!r}", line_number)
                current.choices.append(choice)
                continue

            # Next node reference
            match = self.NEXT_PATTERN.match(line)
            if match:
                flush()
                current.next_node = match.group(1)
                continue

            # Auto-continue for the previous line
            match = self.AUTO_PATTERN.match(line)
            if match:
                flush()
                if not current.lines:
                    raise ScriptSyntaxError("'+ auto' before any line", line_number)
                target = current.lines[-1]
                target.auto_continue = True
                if match.group(1):
                    target.auto_delay = float(match.group(1))
                continue

            # Directive
            match = self.DIRECTIVE_PATTERN.match(line)
            if match:
                flush()
                self._apply_directive(current, match.group(1), match.group(2), line_number)
                if match.group(1) == 'speed':
                    speed = self._parse_speed(match.group(2), line_number)
                continue

            # Regular text line
            paragraph.append(line)

        flush()
        return nodes

    def _apply_directive(self, node: ParsedNode, name: str, arg: Optional[str], line_number: int) -> None:
        if name == 'end':
            node.ends = True
        elif name == 'event':
            if not arg:
                raise ScriptSyntaxError("'!event' needs a name", line_number)
            node.event = arg
        elif name != 'speed':
            raise ScriptSyntaxError(f"unknown directive {name!r}", line_number)

    @staticmethod
    def _parse_speed(arg: Optional[str], line_number: int) -> float:
        try:
            return float(arg or '')
        except ValueError:
            raise ScriptSyntaxError(f"'!speed' needs a number, got {arg!r}", line_number) from None

    def to_json(self, nodes: list[ParsedNode]) -> list[dict[str, Any]]:
        """Convert parsed nodes to the node JSON format."""
        result = []
        for node in nodes:
            data: dict[str, Any] = {
                'id': node.id,
                'lines': [self._line_json(line) for line in node.lines],
                'choices': [
                    {
                        'text': choice.text,
                        'targetNodeId': choice.target,
                        **({'requiredFlag': choice.requires} if choice.requires else {}),
                        **({'setFlag': choice.sets} if choice.sets else {}),
                    }
                    for choice in node.choices
                ],
                'endsConversation': node.ends,
            }
            if node.next_node:
                data['defaultNextId'] = node.next_node
            if node.event:
                data['onCompleteEventName'] = node.event
            result.append(data)
        return result

    @staticmethod
    def _line_json(line: ParsedLine) -> dict[str, Any]:
        data: dict[str, Any] = {
            'speaker': line.speaker,
            'text': line.text,
            'autoContinue': line.auto_continue,
        }
        if line.typewriter_speed is not None:
            data['typewriterSpeed'] = line.typewriter_speed
        if line.auto_delay is not None:
            data['autoContinueDelaySeconds'] = line.auto_delay
        if line.portrait:
            data['portraitRef'] = line.portrait
        return data

    def to_nodes(self, nodes: list[ParsedNode]) -> list[DialogueNode]:
        """Convert parsed nodes to DialogueNode models."""
        return [DialogueNode.model_validate(data) for data in self.to_json(nodes)]

    def save_json(self, nodes: list[ParsedNode], path: str | Path) -> None:
        """Save parsed nodes as JSON."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_json(nodes), f, indent=2, ensure_ascii=False)


def compile_script(input_path: str | Path, output_path: Optional[str | Path] = None) -> Path:
    """
    Compile a dialogue script to JSON.

    Args:
        input_path: Path to .dialog file
        output_path: Path to output .json file (default: same name with .json)

    Returns:
        The output path
    """
    input_path = Path(input_path)
    if output_path is None:
        output_path = input_path.with_suffix('.json')
    else:
        output_path = Path(output_path)

    parser = DialogueScriptParser()
    parser.save_json(parser.parse_file(input_path), output_path)
    return output_path
