"""Tests for stage script templates and error chains."""

import pytest

from gt_installer.errors import InstallerError, format_error_chain
from gt_installer.smalltalk.expression import ExpressionBuilder
from gt_installer.smalltalk.templates import (
    CLONE_GT_TEMPLATE,
    LOAD_GT_TEMPLATE,
    TemplateError,
    loader_template,
    render,
    write_script,
)
from gt_installer.types import Loader


class TestRender:
    """Tests for render function."""

    def test_substitutes_values(self):
        assert render("v{{version}}-{{os}}", version="1.0.3", os="Linux") == "v1.0.3-Linux"

    def test_unknown_placeholder(self):
        """A placeholder without a value should be an error, not left in place."""
        with pytest.raises(TemplateError) as exc_info:
            render("{{missing}}")
        assert exc_info.value.code == "template_error"
        assert "{{missing}}" in str(exc_info.value)

    def test_loader_templates(self):
        assert loader_template(Loader.CLONER) is CLONE_GT_TEMPLATE
        assert loader_template(Loader.METACELLO) is LOAD_GT_TEMPLATE

    def test_write_script_pins_version(self, tmp_path):
        """The toolkit script should reference the pinned tag."""
        path = write_script(
            tmp_path / "load-gt.st", CLONE_GT_TEMPLATE, image_version="1.0.1530"
        )
        assert "github://feenkcom/gtoolkit:v1.0.1530/src" in path.read_text()


class TestExpressionBuilder:
    """Tests for ExpressionBuilder."""

    def test_joins_statements(self):
        assert ExpressionBuilder().add("a").add("b").build() == "a.b"

    def test_empty(self):
        assert ExpressionBuilder().build() == ""


class TestErrorChain:
    """Tests for format_error_chain function."""

    def test_causes_outermost_first(self):
        try:
            try:
                raise OSError("disk full")
            except OSError as e:
                raise InstallerError("Failed to write state") from e
        except InstallerError as error:
            assert format_error_chain(error) == ["Failed to write state", "disk full"]
