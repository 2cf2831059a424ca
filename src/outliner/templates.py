"""Starter outlines.

Each template is declared as data (section names, starter content and optional
sub-sections) and built through the same tree builder the importers use, so a
template outline has the ids, links, kinds and prefixes of any other outline.
"""

from __future__ import annotations

from dataclasses import dataclass

from outliner.errors import TemplateNotFoundError
from outliner.formats.base import ParsedNode, build_outline
from outliner.models.outline import Outline, new_blank_outline

# (name, content, sub-section names)
Section = tuple[str, str, tuple[str, ...]]


@dataclass(frozen=True)
class Template:
    """A named recipe for a new outline."""

    id: str
    name: str
    description: str
    icon: str
    root_name: str
    sections: tuple[Section, ...]
    root_content: str = ""

    def create(self, name: str | None = None) -> Outline:
        """Build a fresh outline; every call yields new ids."""

        root = ParsedNode(name=name or self.root_name, content=self.root_content)
        for section_name, content, children in self.sections:
            section = ParsedNode(name=section_name, content=content)
            section.children.extend(ParsedNode(name=child) for child in children)
            root.children.append(section)
        outline, _ = build_outline(root, root.name)
        return outline


def _flat(*sections: tuple[str, str]) -> tuple[Section, ...]:
    return tuple((name, content, ()) for name, content in sections)


_TEMPLATES: tuple[Template, ...] = (
    Template(
        id="meeting-notes",
        name="Meeting Notes",
        description="Capture attendees, agenda, and action items",
        icon="📋",
        root_name="Meeting Notes",
        sections=_flat(
            ("Attendees", "<p>List meeting attendees here...</p>"),
            ("Agenda", "<p>Meeting agenda items...</p>"),
            ("Discussion", "<p>Key discussion points...</p>"),
            ("Action Items", "<p>• Task 1 - Owner - Due Date</p><p>• Task 2 - Owner - Due Date</p>"),
            ("Next Steps", "<p>Follow-up items and next meeting date...</p>"),
        ),
    ),
    Template(
        id="project-plan",
        name="Project Plan",
        description="Organize goals, timeline, and resources",
        icon="📊",
        root_name="Project Plan",
        sections=_flat(
            ("Overview", "<p>Project description and goals...</p>"),
            ("Objectives", "<p>• Objective 1</p><p>• Objective 2</p><p>• Objective 3</p>"),
            ("Timeline", "<p>Key milestones and deadlines...</p>"),
            ("Resources", "<p>Team members, budget, tools...</p>"),
            ("Risks", "<p>Potential risks and mitigation strategies...</p>"),
            ("Success Metrics", "<p>How we will measure success...</p>"),
        ),
    ),
    Template(
        id="book-outline",
        name="Book Outline",
        description="Structure chapters and sections for writing",
        icon="📖",
        root_name="Book Title",
        root_content="<p>Your book synopsis here...</p>",
        sections=(
            (
                "Introduction",
                "<p>Hook the reader and introduce the main theme...</p>",
                ("Opening Hook", "Thesis Statement", "Chapter Overview"),
            ),
            ("Chapter 1", "<p>First main chapter...</p>", ("Key Point 1", "Key Point 2", "Summary")),
            ("Chapter 2", "<p>Second main chapter...</p>", ("Key Point 1", "Key Point 2", "Summary")),
            ("Conclusion", "<p>Wrap up and call to action...</p>", ("Recap", "Final Thoughts", "Call to Action")),
        ),
    ),
    Template(
        id="research-paper",
        name="Research Paper",
        description="Academic paper with standard sections",
        icon="🔬",
        root_name="Research Paper",
        sections=_flat(
            ("Abstract", "<p>Brief summary of the research (150-300 words)...</p>"),
            ("Introduction", "<p>Background, problem statement, and research questions...</p>"),
            ("Literature Review", "<p>Review of existing research and theoretical framework...</p>"),
            ("Methodology", "<p>Research design, data collection, and analysis methods...</p>"),
            ("Results", "<p>Findings and data presentation...</p>"),
            ("Discussion", "<p>Interpretation of results and implications...</p>"),
            ("Conclusion", "<p>Summary, limitations, and future research...</p>"),
            ("References", "<p>Bibliography and citations...</p>"),
        ),
    ),
    Template(
        id="weekly-review",
        name="Weekly Review",
        description="Reflect on wins, challenges, and goals",
        icon="📅",
        root_name="Weekly Review",
        sections=_flat(
            ("Wins This Week", "<p>What went well?</p><p>• </p>"),
            ("Challenges", "<p>What was difficult?</p><p>• </p>"),
            ("Lessons Learned", "<p>What did I learn?</p><p>• </p>"),
            ("Next Week Goals", "<p>Top 3 priorities:</p><p>1. </p><p>2. </p><p>3. </p>"),
            ("Notes", "<p>Additional thoughts...</p>"),
        ),
    ),
    Template(
        id="course-notes",
        name="Course Notes",
        description="Organize learning by modules and topics",
        icon="🎓",
        root_name="Course Notes",
        root_content="<p>Course name and overview...</p>",
        sections=_flat(
            ("Course Overview", "<p>Instructor, schedule, and objectives...</p>"),
            ("Module 1", "<p>First module notes...</p>"),
            ("Module 2", "<p>Second module notes...</p>"),
            ("Module 3", "<p>Third module notes...</p>"),
            ("Key Concepts", "<p>Important terms and definitions...</p>"),
            ("Study Guide", "<p>Exam prep and review materials...</p>"),
        ),
    ),
)


def get_templates() -> list[Template]:
    return list(_TEMPLATES)


def get_template(template_id: str) -> Template | None:
    return next((t for t in _TEMPLATES if t.id == template_id), None)


def create_from_template(template_id: str | None = None, name: str | None = None) -> Outline:
    """Create an outline from a template, or a blank one when ``template_id`` is empty.

    Raises:
        TemplateNotFoundError: If no template has ``template_id``.
    """

    if not template_id or template_id == "blank":
        return new_blank_outline(name or "Untitled Outline")
    template = get_template(template_id)
    if template is None:
        raise TemplateNotFoundError(f"No template with id: {template_id}")
    return template.create(name)
