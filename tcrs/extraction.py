"""
Project and activity extraction from the TCRS week page.

The page carries projects in a <select> dropdown and activities in inline
script calls. Each source is read by its own extractor; the results are
then reconciled by project id. Parsing is best-effort: anything that does
not match the expected shapes is skipped.
"""

from typing import Dict, Iterable, List, NamedTuple, Tuple

from .logging_utils import get_logger
from .models import Activity, Project, ProjectsAndActivities
from .selectors import TCRSSelectors


class ProjectOption(NamedTuple):
    """A project option found in the dropdown."""
    id: str
    name: str


class ActivityDeclaration(NamedTuple):
    """The five arguments of one act.append(...) call, as written."""
    project_id: str
    label: str
    is_bottom: str
    uid: str
    progress: str


def extract_dropdown_projects(markup: str) -> List[ProjectOption]:
    """
    Extract project options from the dropdown markup.

    Both option shapes (plain and with extra attributes) are scanned; the
    matches are merged in document order and deduplicated by value and
    trimmed label. Placeholder entries and the no-selection sentinel are
    dropped. When one id carries several labels, the first one wins.

    Args:
        markup: Page HTML

    Returns:
        Project options in document order, unique by id
    """
    matches: List[Tuple[int, str, str]] = []
    for pattern in (TCRSSelectors.PROJECT_OPTION, TCRSSelectors.PROJECT_OPTION_WITH_ATTRS):
        for match in pattern.finditer(markup):
            matches.append((match.start(), match.group(1), match.group(2)))
    matches.sort(key=lambda m: m[0])

    seen_pairs = set()
    by_id: Dict[str, ProjectOption] = {}
    for _, value, label in matches:
        name = label.strip()

        if not name or value == TCRSSelectors.NO_SELECTION:
            continue
        if TCRSSelectors.PLACEHOLDER_LABEL in name.lower():
            continue

        pair = (value, name)
        if pair in seen_pairs:
            continue
        seen_pairs.add(pair)

        if value not in by_id:
            by_id[value] = ProjectOption(value, name)

    return list(by_id.values())


def extract_script_activities(markup: str) -> List[ActivityDeclaration]:
    """
    Extract activity declarations from the page script.

    Only complete five-argument calls match; partial calls are skipped.
    """
    return [
        ActivityDeclaration(*match.groups())
        for match in TCRSSelectors.ACTIVITY_CALL.finditer(markup)
    ]


def parent_label(label: str) -> str:
    """
    Derive a display name from an activity label.

    The part before a '<<...>>' hierarchy marker is used when present.

    Example:
        >>> parent_label('  Design <<1.2>>')
        'Design'
    """
    stripped = label.strip()
    match = TCRSSelectors.HIERARCHY_PARENT.search(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def synthesize_projects(declarations: Iterable[ActivityDeclaration]) -> List[ProjectOption]:
    """
    Build one project per distinct project id seen in the activities.

    Used when the page has no project dropdown. Projects are returned in
    first-seen order and named after their first activity label.
    """
    projects: Dict[str, ProjectOption] = {}
    for decl in declarations:
        if decl.project_id not in projects:
            projects[decl.project_id] = ProjectOption(decl.project_id, parent_label(decl.label))
    return list(projects.values())


def clean_activity_label(label: str) -> Tuple[str, int]:
    """
    Clean an activity label and measure its indentation.

    The indent level is the number of leading whitespace characters of
    the raw label. The name is the label without surrounding whitespace,
    without 'N. ' / 'N) ' list prefixes and without the '<<...>>'
    hierarchy marker. Cleaning is repeated until the name is stable, so
    cleaning an already-clean name returns it unchanged.

    Args:
        label: Label as declared in the page script

    Returns:
        Tuple of (name, indent_level)

    Examples:
        >>> clean_activity_label('  Sub Task <<1.1>>')
        ('Sub Task', 2)
        >>> clean_activity_label('1. Design')
        ('Design', 0)
    """
    indent_match = TCRSSelectors.LEADING_WHITESPACE.match(label)
    indent_level = len(indent_match.group(0)) if indent_match else 0

    name = label
    while True:
        cleaned = name.strip()

        prefix_match = TCRSSelectors.NUMBER_PREFIX.match(cleaned)
        if prefix_match:
            cleaned = prefix_match.group(2)

        marker_match = TCRSSelectors.HIERARCHY_MARKER.match(cleaned)
        if marker_match:
            cleaned = marker_match.group(1)

        cleaned = cleaned.strip()
        if cleaned == name:
            return name, indent_level
        name = cleaned


def build_activity(decl: ActivityDeclaration) -> Activity:
    """Turn a script declaration into an Activity."""
    name, indent_level = clean_activity_label(decl.label)
    return Activity(
        id=Activity.make_id(decl.project_id, name, decl.uid),
        project_id=decl.project_id,
        name=name,
        full_name=decl.label,
        is_bottom=decl.is_bottom.strip().lower() == 'true',
        uid=decl.uid,
        progress=decl.progress,
        indent_level=indent_level,
    )


def reconcile(options: Iterable[ProjectOption],
              declarations: Iterable[ActivityDeclaration]) -> List[Project]:
    """
    Attach activities to projects by id.

    Activities whose project is not among the options get a synthesized
    project, so every activity ends up under an existing project.
    Projects keep their discovery order; activities keep source order.
    """
    projects: Dict[str, Project] = {}
    for option in options:
        projects[option.id] = Project(id=option.id, name=option.name)

    for decl in declarations:
        project = projects.get(decl.project_id)
        if project is None:
            get_logger().debug(f"Activity references unlisted project {decl.project_id}")
            project = Project(id=decl.project_id, name=f"Project {decl.project_id}")
            projects[decl.project_id] = project
        project.activities.append(build_activity(decl))

    return list(projects.values())


def extract_projects_and_activities(markup: str, date: str) -> ProjectsAndActivities:
    """
    Recover the project/activity hierarchy from the week page.

    Args:
        markup: Page HTML
        date: Date the page was requested for

    Returns:
        ProjectsAndActivities for the date
    """
    logger = get_logger()

    options = extract_dropdown_projects(markup)
    declarations = extract_script_activities(markup)
    logger.debug(
        f"Found {len(options)} dropdown project(s) and {len(declarations)} activity declaration(s)"
    )

    if not options:
        options = synthesize_projects(declarations)
        if options:
            logger.debug(f"No project dropdown; synthesized {len(options)} project(s) from activities")

    return ProjectsAndActivities(date=date, projects=reconcile(options, declarations))
