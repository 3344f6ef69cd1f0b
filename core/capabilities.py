"""
Capability Registry

Declares the fixed set of functions the model may call and which of them
each role may use. Enumerated parameter values are resolved from the
domain enum source when the registry is built, so the schemas follow the
backend enums.

The registry is read-only after it is built and safe to share between
concurrent requests.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from domain import Role, get_enum_values

logger = logging.getLogger(__name__)


# ============================================================================
# TOOL IDENTIFIERS
# ============================================================================

class ToolName(str, Enum):
    """Every function the model can request."""
    USERS_COUNT_ALL = "users_count_all"
    USERS_FIND_ONE = "users_find_one"
    COURSES_FIND_ALL = "courses_find_all"
    COURSES_FIND_ONE = "courses_find_one"
    ENROLLMENT_FIND_PERIODS = "enrollment_find_periods"
    ENROLLMENT_ACTIVE_PERIOD = "enrollment_active_period"
    ENROLLMENT_MY_COURSES = "enrollment_my_courses"
    LMS_MY_MODULES = "lms_my_modules"
    LMS_MODULE_CONTENTS = "lms_module_contents"
    BILLING_FIND_ALL = "billing_find_all"
    BILLING_FIND_ONE = "billing_find_one"
    SEARCH_VECTOR = "search_vector"

    @classmethod
    def parse(cls, name: str) -> Optional["ToolName"]:
        """Return the matching member, or None for an unknown name."""
        try:
            return cls(name)
        except ValueError:
            return None


PARAMETER_TYPES = ("STRING", "INTEGER", "OBJECT", "ARRAY")


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class ParameterSpec:
    """
    One parameter of a capability.

    Attributes:
        name: Parameter name as the model must send it
        type: One of STRING, INTEGER, OBJECT, ARRAY
        description: What the parameter means
        required: Whether the model must always send it
        default: Value the handler uses when omitted
        enum: Legal values for constrained fields
        items_type: Element type for ARRAY parameters
    """
    name: str
    type: str
    description: str
    required: bool = False
    default: Any = None
    enum: Tuple[str, ...] = ()
    items_type: Optional[str] = None

    def to_schema(self) -> Dict[str, Any]:
        """Render as a Gemini property schema."""
        description = self.description
        if self.default is not None:
            description = f"{description} Defaults to {self.default}."

        schema: Dict[str, Any] = {"type": self.type, "description": description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.type == "ARRAY":
            schema["items"] = {"type": self.items_type or "STRING"}
        return schema


@dataclass(frozen=True)
class CapabilityDescriptor:
    """A named, schema-described function the model may request."""
    name: str
    description: str
    parameters: Tuple[ParameterSpec, ...] = ()

    @property
    def required(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def to_function_declaration(self) -> Dict[str, Any]:
        """Render as a Gemini function declaration."""
        parameters: Dict[str, Any] = {
            "type": "OBJECT",
            "properties": {p.name: p.to_schema() for p in self.parameters},
        }
        if self.required:
            parameters["required"] = self.required
        return {
            "name": self.name,
            "description": self.description,
            "parameters": parameters,
        }


# ============================================================================
# TOOL TABLE
# ============================================================================

# "enum" entries name a key of domain.get_enum_values(); they are resolved
# when the registry is built.
TOOL_TABLE: List[Dict[str, Any]] = [
    {
        "name": ToolName.USERS_COUNT_ALL,
        "description": "Count users, optionally filtered by role and/or a search term. Returns the number of matching users.",
        "parameters": [
            {"name": "role", "type": "STRING", "enum": "role", "description": "Optional role filter."},
            {"name": "search", "type": "STRING", "description": "Optional search string; matched against first name, last name, or email."},
        ],
    },
    {
        "name": ToolName.USERS_FIND_ONE,
        "description": "Find a user by their UUID, including student or staff details.",
        "parameters": [
            {"name": "id", "type": "STRING", "required": True, "description": "User UUID."},
        ],
    },
    {
        "name": ToolName.COURSES_FIND_ALL,
        "description": "List courses in the catalog, optionally filtered by a search term. Returns course codes, names, units and descriptions.",
        "parameters": [
            {"name": "search", "type": "STRING", "description": "Optional search string matched against course code or name."},
            {"name": "page", "type": "INTEGER", "default": 1, "description": "Page number (1-based)."},
            {"name": "limit", "type": "INTEGER", "default": 10, "description": "Number of courses per page."},
        ],
    },
    {
        "name": ToolName.COURSES_FIND_ONE,
        "description": "Fetch a single course by its identifier, including prerequisites and co-requisites.",
        "parameters": [
            {"name": "id", "type": "STRING", "required": True, "description": "Course identifier."},
        ],
    },
    {
        "name": ToolName.ENROLLMENT_FIND_PERIODS,
        "description": "List enrollment periods (school year and term), optionally filtered by status.",
        "parameters": [
            {"name": "status", "type": "STRING", "enum": "enrollment_status", "description": "Optional enrollment period status filter."},
            {"name": "page", "type": "INTEGER", "default": 1, "description": "Page number (1-based)."},
        ],
    },
    {
        "name": ToolName.ENROLLMENT_ACTIVE_PERIOD,
        "description": "Get the currently active enrollment period with its start and end dates. No parameters required.",
        "parameters": [],
    },
    {
        "name": ToolName.ENROLLMENT_MY_COURSES,
        "description": "List the course sections the current student is enrolled in for the active enrollment period, including schedule and mentor.",
        "parameters": [
            {"name": "status", "type": "STRING", "enum": "course_enrollment_status", "description": "Optional course enrollment status filter."},
        ],
    },
    {
        "name": ToolName.LMS_MY_MODULES,
        "description": "List the learning modules available to the current user (enrolled modules for students, handled modules for mentors, all modules for admins).",
        "parameters": [
            {"name": "search", "type": "STRING", "description": "Optional search string matched against the module title."},
            {"name": "page", "type": "INTEGER", "default": 1, "description": "Page number (1-based)."},
        ],
    },
    {
        "name": ToolName.LMS_MODULE_CONTENTS,
        "description": "List the contents of a learning module (lessons, assignments, quizzes and other items) with due dates and the current user's progress.",
        "parameters": [
            {"name": "moduleId", "type": "STRING", "required": True, "description": "Module identifier, as returned by the module listing."},
            {"name": "contentType", "type": "STRING", "enum": "content_type", "description": "Optional content type filter."},
            {"name": "progress", "type": "STRING", "enum": "progress_status", "description": "Optional progress status filter."},
        ],
    },
    {
        "name": ToolName.BILLING_FIND_ALL,
        "description": "List bills with payment status and amounts. Students only see their own bills.",
        "parameters": [
            {"name": "status", "type": "STRING", "enum": "bill_status", "description": "Optional bill status filter."},
            {"name": "scheme", "type": "STRING", "enum": "payment_scheme", "description": "Optional payment scheme filter."},
            {"name": "sortOrder", "type": "STRING", "enum": "sort_order", "default": "desc", "description": "Sort order by creation date."},
            {"name": "page", "type": "INTEGER", "default": 1, "description": "Page number (1-based)."},
        ],
    },
    {
        "name": ToolName.BILLING_FIND_ONE,
        "description": "Fetch a single bill with its installments and payments.",
        "parameters": [
            {"name": "id", "type": "STRING", "required": True, "description": "Bill identifier."},
        ],
    },
    {
        "name": ToolName.SEARCH_VECTOR,
        "description": "Search the school knowledge base (policies, FAQs, procedures, schedules, contacts) for passages relevant to a query.",
        "parameters": [
            {"name": "query", "type": "STRING", "required": True, "description": "Natural-language search query."},
            {"name": "limit", "type": "INTEGER", "default": 5, "description": "Maximum number of passages to return."},
        ],
    },
]

# Admin is a superset of the other roles; search is open to everyone.
ROLE_TOOLS: Dict[Role, Tuple[ToolName, ...]] = {
    Role.ADMIN: tuple(ToolName),
    Role.MENTOR: (
        ToolName.COURSES_FIND_ALL,
        ToolName.COURSES_FIND_ONE,
        ToolName.ENROLLMENT_ACTIVE_PERIOD,
        ToolName.LMS_MY_MODULES,
        ToolName.LMS_MODULE_CONTENTS,
        ToolName.SEARCH_VECTOR,
    ),
    Role.STUDENT: (
        ToolName.COURSES_FIND_ALL,
        ToolName.COURSES_FIND_ONE,
        ToolName.ENROLLMENT_ACTIVE_PERIOD,
        ToolName.ENROLLMENT_MY_COURSES,
        ToolName.LMS_MY_MODULES,
        ToolName.LMS_MODULE_CONTENTS,
        ToolName.BILLING_FIND_ALL,
        ToolName.BILLING_FIND_ONE,
        ToolName.SEARCH_VECTOR,
    ),
}

UNIVERSAL_TOOLS: Tuple[ToolName, ...] = (ToolName.SEARCH_VECTOR,)


# ============================================================================
# REGISTRY
# ============================================================================

def parse_role(role: Union[Role, str, None]) -> Optional[Role]:
    """Map a role value to ``Role``; unknown values give None."""
    if isinstance(role, Role):
        return role
    if not isinstance(role, str):
        return None
    try:
        return Role(role.strip().lower())
    except ValueError:
        return None


def _build_descriptor(entry: Mapping[str, Any], enum_values: Mapping[str, List[str]]) -> CapabilityDescriptor:
    name = ToolName(entry["name"]).value
    parameters = []
    for param in entry.get("parameters", []):
        if param["type"] not in PARAMETER_TYPES:
            raise ValueError(f"Parameter '{param['name']}' of '{name}' has unknown type {param['type']}")

        enum_key = param.get("enum")
        legal: Tuple[str, ...] = ()
        if enum_key:
            if enum_key not in enum_values:
                raise ValueError(f"Parameter '{param['name']}' of '{name}' references unknown enum '{enum_key}'")
            legal = tuple(enum_values[enum_key])

        parameters.append(ParameterSpec(
            name=param["name"],
            type=param["type"],
            description=param["description"],
            required=param.get("required", False),
            default=param.get("default"),
            enum=legal,
            items_type=param.get("items_type"),
        ))
    return CapabilityDescriptor(name=name, description=entry["description"], parameters=tuple(parameters))


class CapabilityRegistry:
    """
    Static table of capability descriptors plus the role map.

    Use ``CapabilityRegistry.build()`` (or ``build_default_registry()``) to
    assemble it from the tool table and the enum source.
    """

    def __init__(
        self,
        descriptors: Iterable[CapabilityDescriptor],
        role_tools: Mapping[Role, Iterable[ToolName]],
    ):
        self._descriptors: Dict[str, CapabilityDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise ValueError(f"Duplicate capability name: {descriptor.name}")
            self._descriptors[descriptor.name] = descriptor

        self._by_role: Dict[Role, Tuple[CapabilityDescriptor, ...]] = {}
        for role, tools in role_tools.items():
            resolved = []
            for tool in tools:
                key = ToolName(tool).value
                if key not in self._descriptors:
                    raise ValueError(f"Role '{role.value}' references undeclared capability '{key}'")
                resolved.append(self._descriptors[key])
            self._by_role[role] = tuple(resolved)

    @classmethod
    def build(
        cls,
        enum_source: Callable[[], Mapping[str, List[str]]] = get_enum_values,
        table: Optional[List[Dict[str, Any]]] = None,
        role_tools: Optional[Mapping[Role, Iterable[ToolName]]] = None,
    ) -> "CapabilityRegistry":
        """
        Assemble the registry.

        Args:
            enum_source: Callable returning current enum values by key
            table: Tool table (defaults to TOOL_TABLE)
            role_tools: Role map (defaults to ROLE_TOOLS)

        Returns:
            A new CapabilityRegistry
        """
        enum_values = enum_source()
        descriptors = [_build_descriptor(entry, enum_values) for entry in (TOOL_TABLE if table is None else table)]
        registry = cls(descriptors, ROLE_TOOLS if role_tools is None else role_tools)
        logger.info(f"✅ Capability registry built with {len(descriptors)} tools")
        return registry

    def get_capabilities_for_role(self, role: Union[Role, str, None]) -> Tuple[CapabilityDescriptor, ...]:
        """
        Ordered capability set for a role.

        Unknown roles get an empty tuple, so the model can only answer
        in plain text.
        """
        parsed = parse_role(role)
        if parsed is None:
            logger.warning(f"⚠️  Unknown role {role!r}: no tools granted")
            return ()
        return self._by_role.get(parsed, ())

    def get(self, name: str) -> Optional[CapabilityDescriptor]:
        return self._descriptors.get(name)

    def names(self) -> List[str]:
        """All registered capability names."""
        return list(self._descriptors)

    def to_function_declarations(self, role: Union[Role, str, None]) -> List[Dict[str, Any]]:
        """Gemini function declarations for the tools a role may use."""
        return [d.to_function_declaration() for d in self.get_capabilities_for_role(role)]


_DEFAULT_REGISTRY: Optional[CapabilityRegistry] = None


def build_default_registry(force_rebuild: bool = False) -> CapabilityRegistry:
    """Build the registry once per process and reuse it."""
    global _DEFAULT_REGISTRY

    if _DEFAULT_REGISTRY is None or force_rebuild:
        _DEFAULT_REGISTRY = CapabilityRegistry.build()
    return _DEFAULT_REGISTRY
