from dataclasses import dataclass

import pytest

from solve.locale import (
    SettingLocale,
    StubLocale,
    localization_key,
    select_locale,
)


@dataclass
class Setting:
    key: str
    value: str


class FakeSettings:
    def __init__(self, values):
        self.values = dict(values)

    def get_by_key(self, key):
        if key not in self.values:
            raise LookupError(key)
        return Setting(key, self.values[key])

    def all(self):
        return [Setting(key, value) for key, value in self.values.items()]


def test_localization_key_of_message():
    assert (
        localization_key("en", "Form has invalid fields.")
        == "localization.en.form_has_invalid_fields"
    )


def test_localization_key_skips_placeholders_punctuation():
    assert (
        localization_key("en", 'User "{login}" does not exists.')
        == "localization.en.user_login_does_not_exists"
    )


def test_localization_key_has_no_empty_words():
    key = localization_key("ru", "  Old   and new -- passwords!! ")
    suffix = key[len("localization.ru."):]
    assert key.startswith("localization.ru.")
    assert "__" not in suffix
    assert not suffix.startswith("_")
    assert not suffix.endswith("_")


def test_stub_locale_returns_text():
    locale = StubLocale()
    assert locale.name == ""
    assert locale.localize("Login too short.") == "Login too short."


def test_stub_locale_replaces_fields():
    locale = StubLocale()
    result = locale.localize('User "{login}" does not exists.', login="alice")
    assert result == 'User "alice" does not exists.'


def test_stub_locale_has_no_localizations():
    assert StubLocale().get_localizations() == {}


def test_setting_locale_translates():
    text = "Invalid password."
    settings = FakeSettings({localization_key("ru", text): "Неверный пароль."})
    locale = SettingLocale("ru", settings)
    assert locale.localize(text) == "Неверный пароль."


def test_setting_locale_falls_back_to_text():
    locale = SettingLocale("ru", FakeSettings({}))
    assert locale.localize("Unknown error.") == "Unknown error."


def test_setting_locale_replaces_fields_in_translation():
    text = 'User "{login}" does not exists.'
    settings = FakeSettings({localization_key("ru", text): "Нет пользователя {login}"})
    result = SettingLocale("ru", settings).localize(text, login="bob")
    assert "bob" in result
    assert "{login}" not in result
    assert result.startswith("Нет пользователя")


def test_setting_locale_localizations_filtered_by_name():
    settings = FakeSettings(
        {
            "localization.ru.hello": "Привет",
            "localization.en.hello": "Hello",
            "other.key": "value",
        }
    )
    assert SettingLocale("ru", settings).get_localizations() == {"hello": "Привет"}


@pytest.mark.parametrize(
    "header, expected",
    [
        ("ru-RU,ru;q=0.9,en;q=0.8", "ru"),
        ("en;q=0.5,ru;q=0.9", "ru"),
        ("fr,en", "en"),
        ("ru;q=0,en", "en"),
        ("EN", "en"),
    ],
)
def test_select_locale_picks_supported(header, expected):
    locale = select_locale(header, FakeSettings({}))
    assert isinstance(locale, SettingLocale)
    assert locale.name == expected


@pytest.mark.parametrize("header", ["", None, "fr", "de-DE,fr;q=0.5", "en;q=abc"])
def test_select_locale_falls_back_to_stub(header):
    locale = select_locale(header, FakeSettings({}))
    assert isinstance(locale, StubLocale)
    assert locale.name == ""