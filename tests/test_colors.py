"""
Tests for color helpers and the synchronized color field
"""
from PySide6.QtGui import QColor

from retflow.editor.colors import ColorField, is_valid_hex, to_qcolor


class TestHexValidation:
    """Tests for strict #RRGGBB checking"""

    def test_valid(self):
        assert is_valid_hex("#0066FF")
        assert is_valid_hex("#a1b2c3")

    def test_invalid(self):
        for text in ("", "0066FF", "#06F", "#0066FG", "#0066FF0", "red", " #0066FF", "#0066FF\n"):
            assert not is_valid_hex(text), text


class TestToQColor:
    """Tests for stored color conversion"""

    def test_alpha_override(self):
        color = to_qcolor("#FF0000", alpha=0.5)
        assert color.red() == 255
        assert abs(color.alphaF() - 0.5) < 0.01

    def test_unparseable_is_black(self):
        assert to_qcolor("not a color") == QColor(0, 0, 0)


class TestColorField:
    """Tests for ColorField"""

    def test_swatch_updates_text(self):
        """Selecting a swatch shows the same value in the text field"""
        field = ColorField("#FF3C00")
        field.select_swatch("#0066FF")
        assert field.text == "#0066FF"
        assert field.swatch == QColor("#0066FF")

    def test_text_updates_swatch(self):
        """Typing a color moves the swatch"""
        field = ColorField()
        field.set_text("#00FF00")
        assert field.swatch == QColor(0, 255, 0)

    def test_text_is_unvalidated(self):
        """The text field accepts partial input as typed"""
        field = ColorField()
        field.set_text("#00F")
        assert field.value == "#00F"

    def test_custom_entry_rejects_invalid(self):
        """Invalid custom entries leave the color unchanged"""
        field = ColorField("#FF3C00")
        assert field.enter_custom("#12345") is False
        assert field.value == "#FF3C00"

    def test_custom_entry_accepts_any_case(self):
        field = ColorField()
        assert field.enter_custom("#abcdef") is True
        assert field.value == "#abcdef"

    def test_listeners_called_on_change_only(self):
        """Listeners fire for real changes"""
        seen = []
        field = ColorField("#FF3C00")
        field.on_change(seen.append)

        field.select_swatch("#FF3C00")
        field.select_swatch("#FFD700")

        assert seen == ["#FFD700"]

    def test_custom_entry_rejects_trailing_newline(self):
        field = ColorField("#FF3C00")
        assert field.enter_custom("#0066FF\n") is False
        assert field.value == "#FF3C00"
