"""Binding generator: schema + operations to one Python module.

Renders a Jinja2 template with the synthesized binding sets.

Supports custom templates via the template_dir parameter:
    generator = BindingGenerator(schema, document, template_dir="./my_templates")

Template lookup order:
1. User's template directory (if provided)
2. Package default templates
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from graphql import DocumentNode
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

from .errors import ValidationError
from .hooks import HookRunner
from .ir import IRSchema
from .resolver import TypeResolver
from .scalars import ScalarRegistry
from .synthesizer import BindingSet, BindingSynthesizer, EnumShape, InputShape

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "bindings.py.j2"

# Names the generated module imports; generated classes must not shadow them
MODULE_NAMES = {
    "asyncio", "Enum", "Any", "ClassVar", "Dict", "List", "Optional", "Union",
    "Field", "field_validator", "GraphQLClient", "UNSET", "BindingModel",
    "InputModel", "decode_variant", "Request", "Response",
    "datetime", "date", "time", "UUID", "Decimal", "Upload",
}


def safe_docstring(text: str) -> str:
    """Escape text for use in docstrings."""
    if not text:
        return ""
    text = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if text.endswith('"'):
        text += " "
    return text


def safe_comment(text: str) -> str:
    """Make text safe for a single-line Python comment."""
    if not text:
        return ""
    text = re.sub(r"\s+", " ", text.replace("\r", ""))
    if len(text) > 120:
        text = text[:117] + "..."
    return text.strip()


def py_string(text: str) -> str:
    """Render text as a Python string literal, triple-quoted when possible."""
    if '"""' in text or "\\" in text or text.endswith('"'):
        return repr(text)
    return f'"""{text}"""'


@dataclass
class GenerationResult:
    """Output of one generator run.

    Attributes:
        source: The rendered module (valid Python)
        bindings: Binding sets that were rendered
        errors: Operations that failed validation, by operation name
    """
    source: str
    bindings: list[BindingSet] = field(default_factory=list)
    errors: dict[str, ValidationError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class BindingGenerator:
    """Generates Python bindings for the operations of a document.

    Supports custom templates via the template_dir parameter. A
    `bindings.py.j2` in template_dir takes precedence over the built-in one.

    Example:
        schema = SchemaParser("./schema").parse_all()
        document = parse_operations("./operations")
        result = BindingGenerator(schema, document).generate()
        Path("client.py").write_text(result.source)
    """

    def __init__(
        self,
        schema: IRSchema,
        document: DocumentNode,
        template_dir: str | None = None,
        scalars: ScalarRegistry | None = None,
        hooks: HookRunner | None = None,
    ):
        """Initialize the generator.

        Args:
            schema: The parsed schema
            document: Parsed operations and fragments
            template_dir: Optional directory with custom Jinja2 templates
            scalars: Scalar bindings; defaults to the built-in registry
            hooks: Pre/post generation hooks
        """
        self.schema = schema
        self.document = document
        self.template_dir = template_dir
        self.scalars = scalars or ScalarRegistry()
        self.hooks = hooks or HookRunner()

        # Build template loader - custom templates take precedence
        loaders = []
        if template_dir:
            template_path = Path(template_dir)
            if template_path.is_dir():
                loaders.append(FileSystemLoader(str(template_path)))
        loaders.append(PackageLoader("gql_opgen", "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["repr"] = repr
        self.env.filters["py_string"] = py_string
        self.env.filters["safe_docstring"] = safe_docstring
        self.env.filters["safe_comment"] = safe_comment

    def synthesize(self) -> tuple[list[BindingSet], dict[str, ValidationError]]:
        """Resolve and synthesize every operation of the document."""
        resolved, errors = TypeResolver(self.schema).resolve_document(self.document)
        synthesizer = BindingSynthesizer(self.scalars)
        taken = set(MODULE_NAMES)
        function_names: set[str] = set()
        bindings = []
        for operation in resolved:
            binding = synthesizer.synthesize(operation, taken)
            if binding.function_name in function_names:
                errors[operation.name] = ValidationError(
                    f"function name {binding.function_name!r} is already used by another operation",
                    operation.name,
                )
                continue
            function_names.add(binding.function_name)
            bindings.append(binding)
        return bindings, errors

    def generate(self, filename: str = "bindings.py") -> GenerationResult:
        """Render the module.

        Operations that fail validation are left out and reported in
        `GenerationResult.errors`; the rest are rendered.

        Raises:
            ValueError: If the template produced invalid Python
        """
        bindings, errors = self.synthesize()
        bindings = self.hooks.run_pre_hooks(bindings)
        content = self.render(bindings, filename)
        content = self.hooks.run_post_hooks(filename, content)
        logger.debug("Generated %d operation(s), %d failed", len(bindings), len(errors))
        return GenerationResult(source=content, bindings=bindings, errors=errors)

    def write(self, path: str | Path) -> GenerationResult:
        """Generate and write the module to `path`."""
        path = Path(path)
        result = self.generate(path.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(result.source)
        return result

    def render(self, bindings: list[BindingSet], filename: str = "bindings.py") -> str:
        """Render binding sets with the template and validate the output."""
        template = self.env.get_template(TEMPLATE_NAME)
        content = template.render(self._context(bindings))

        # Validate Python syntax
        try:
            ast.parse(content)
        except SyntaxError as e:
            raise ValueError(
                f"Generated invalid Python for {filename}: {e}\n"
                f"Template: {TEMPLATE_NAME}"
            ) from e
        return content

    @staticmethod
    def _context(bindings: list[BindingSet]) -> dict[str, Any]:
        enums: dict[str, EnumShape] = {}
        input_types: dict[str, InputShape] = {}
        scalar_imports: set[str] = set()
        for binding in bindings:
            for enum in binding.enums:
                enums.setdefault(enum.name, enum)
            for input_type in binding.input_types:
                input_types.setdefault(input_type.name, input_type)
            scalar_imports.update(binding.scalar_imports)
        return {
            "bindings": bindings,
            "enums": list(enums.values()),
            "input_types": list(input_types.values()),
            "scalar_imports": sorted(scalar_imports),
        }
