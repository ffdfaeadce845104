"""Generation hooks for customizing code generation.

Pre-generation hooks see the synthesized binding sets before rendering and
may drop or rename things; post-generation hooks transform the rendered
source before it is written.

Example usage:
    from gql_opgen.core.hooks import PreGenerateHook, PostGenerateHook

    # Pre-generation hook to drop internal operations
    class DropInternal(PreGenerateHook):
        def pre_generate(self, bindings):
            return [b for b in bindings if not b.operation_name.startswith("Internal")]

    # Post-generation hook to add headers
    class AddLicenseHeader(PostGenerateHook):
        def post_generate(self, filename, content):
            return "# Copyright 2024 My Company\\n\\n" + content
"""

from typing import Protocol, runtime_checkable

from .synthesizer import BindingSet


@runtime_checkable
class PreGenerateHook(Protocol):
    """Protocol for pre-generation hooks.

    Receives every binding set of the module being generated and returns
    the list to render.
    """

    def pre_generate(self, bindings: list[BindingSet]) -> list[BindingSet]:
        ...


@runtime_checkable
class PostGenerateHook(Protocol):
    """Protocol for post-generation hooks.

    Example:
        class FormatWithBlack(PostGenerateHook):
            def post_generate(self, filename: str, content: str) -> str:
                import black
                return black.format_str(content, mode=black.FileMode())
    """

    def post_generate(self, filename: str, content: str) -> str:
        """Called with the rendered module; returns the code to write."""
        ...


class AddHeaderHook:
    """Built-in hook to add a header to generated files.

    Example:
        hook = AddHeaderHook("# Auto-generated - do not edit")
    """

    def __init__(self, header: str):
        self.header = header

    def post_generate(self, _filename: str, content: str) -> str:
        separator = "\n" if self.header.endswith("\n") else "\n\n"
        return self.header + separator + content


class FilterOperationsHook:
    """Built-in hook to keep or drop operations by name.

    Example:
        # Only generate operations whose name starts with "Admin"
        hook = FilterOperationsHook(include_prefix="Admin")
    """

    def __init__(
        self,
        exclude_prefix: str | None = None,
        exclude_suffix: str | None = None,
        include_prefix: str | None = None,
        include_suffix: str | None = None,
    ):
        self.exclude_prefix = exclude_prefix
        self.exclude_suffix = exclude_suffix
        self.include_prefix = include_prefix
        self.include_suffix = include_suffix

    def _should_include(self, name: str) -> bool:
        if self.exclude_prefix and name.startswith(self.exclude_prefix):
            return False
        if self.exclude_suffix and name.endswith(self.exclude_suffix):
            return False
        if self.include_prefix and not name.startswith(self.include_prefix):
            return False
        if self.include_suffix and not name.endswith(self.include_suffix):
            return False
        return True

    def pre_generate(self, bindings: list[BindingSet]) -> list[BindingSet]:
        return [b for b in bindings if self._should_include(b.operation_name)]


class HookRunner:
    """Runs a collection of hooks in order."""

    def __init__(self):
        self.pre_hooks: list[PreGenerateHook] = []
        self.post_hooks: list[PostGenerateHook] = []

    def add_pre_hook(self, hook: PreGenerateHook):
        self.pre_hooks.append(hook)

    def add_post_hook(self, hook: PostGenerateHook):
        self.post_hooks.append(hook)

    def run_pre_hooks(self, bindings: list[BindingSet]) -> list[BindingSet]:
        for hook in self.pre_hooks:
            bindings = hook.pre_generate(bindings)
        return bindings

    def run_post_hooks(self, filename: str, content: str) -> str:
        for hook in self.post_hooks:
            content = hook.post_generate(filename, content)
        return content
