"""
AST node definitions for the class diagram language.
"""

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Union
from enum import Enum, auto


class NodeType(Enum):
    """Discriminant shared by every node variant."""
    ROOT = auto()
    CLASS = auto()
    INTERFACE = auto()
    FIELD = auto()
    METHOD = auto()
    RELATIONSHIP = auto()


class Visibility(Enum):
    """Member visibility, valued by its source marker."""
    PUBLIC = '+'
    PRIVATE = '-'
    PROTECTED = '#'
    PACKAGE = '~'
    NONE = ''


class RelationshipType(Enum):
    """Kinds of relationship operators."""
    INHERITANCE = auto()   # <|--  --|>
    COMPOSITION = auto()   # *--   --*
    AGGREGATION = auto()   # o--   --o
    ASSOCIATION = auto()   # <--   -->  --
    DEPENDENCY = auto()    # <..   ..>
    REALIZATION = auto()   # <|..  ..|>


# =============================================================================
# Member AST nodes
# =============================================================================

@dataclass
class FieldDecl:
    """Field declaration: vis? NAME (: TYPE []?)? (= DEFAULT)?

    Also used for method parameters, which never carry a visibility.
    Array types keep their suffix in the type name, e.g. "int[]".
    """
    node_type: ClassVar[NodeType] = NodeType.FIELD
    name: str
    visibility: Visibility = Visibility.NONE
    value_type: Optional[str] = None
    default: Optional[str] = None
    line: int = 0
    column: int = 0


@dataclass
class MethodDecl:
    """Method declaration: vis? NAME ( params ) (: TYPE []?)?"""
    node_type: ClassVar[NodeType] = NodeType.METHOD
    name: str
    visibility: Visibility = Visibility.NONE
    parameters: List[FieldDecl] = field(default_factory=list)
    return_type: Optional[str] = None
    line: int = 0
    column: int = 0


Member = Union[FieldDecl, MethodDecl]


# =============================================================================
# Entity AST nodes
# =============================================================================

@dataclass
class ClassDecl:
    """Class declaration with an optional member block."""
    node_type: ClassVar[NodeType] = NodeType.CLASS
    name: str
    members: List[Member] = field(default_factory=list)
    line: int = 0
    column: int = 0


@dataclass
class InterfaceDecl:
    """Interface declaration. Interfaces have no body."""
    node_type: ClassVar[NodeType] = NodeType.INTERFACE
    name: str
    line: int = 0
    column: int = 0


@dataclass
class Relationship:
    """Relationship: SOURCE "left"? OP "right"? TARGET (: "middle")?

    The name is "<source> <operator> <target>" using the operator as it
    was written, e.g. "A --|> B".
    """
    node_type: ClassVar[NodeType] = NodeType.RELATIONSHIP
    name: str
    source_class: str
    target_class: str
    relationship_type: RelationshipType
    operator: str
    left_label: Optional[str] = None
    middle_label: Optional[str] = None
    right_label: Optional[str] = None
    line: int = 0
    column: int = 0


Entity = Union[ClassDecl, InterfaceDecl, Relationship]


# =============================================================================
# Root
# =============================================================================

@dataclass
class Diagram:
    """Root of the AST: top-level entities in source order."""
    node_type: ClassVar[NodeType] = NodeType.ROOT
    entities: List[Entity] = field(default_factory=list)
    name: str = "root"

    @property
    def classes(self) -> List[ClassDecl]:
        return [e for e in self.entities if isinstance(e, ClassDecl)]

    @property
    def interfaces(self) -> List[InterfaceDecl]:
        return [e for e in self.entities if isinstance(e, InterfaceDecl)]

    @property
    def relationships(self) -> List[Relationship]:
        return [e for e in self.entities if isinstance(e, Relationship)]
