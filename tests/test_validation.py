import pytest

from report_file_store.config import DatabaseConfig, StorageConfig
from report_file_store.exceptions import (
    EmptyFileNameError,
    SignatureMismatchError,
    UnsupportedExtensionError,
    UnsupportedFileTypeError,
)
from report_file_store.models import FileValidationOptions
from report_file_store.utils.cli_utils import human_size
from report_file_store.validation import FileValidator, file_extension


@pytest.fixture
def validator():
    return FileValidator(StorageConfig(max_file_size=1024))


def test_extension_check_is_case_insensitive(validator):
    validator.validate(b"%PDF-1.4", "REPORT.PDF", "application/pdf")


def test_double_extension_uses_last_suffix(validator):
    with pytest.raises(UnsupportedExtensionError):
        validator.validate(b"%PDF-1.4", "report.pdf.exe", "application/pdf")


def test_empty_name_fails_on_extension_first(validator):
    with pytest.raises(UnsupportedExtensionError):
        validator.validate(b"%PDF-1.4", "", "application/pdf")


def test_whitespace_before_extension_is_a_name(validator):
    validator.validate(b"%PDF-1.4", " .pdf", "application/pdf")


@pytest.mark.parametrize("name", ["", "   "])
def test_blank_name_checked_after_extension(validator, name):
    options = FileValidationOptions(allowed_types=["text/plain"], allowed_extensions=[""])

    with pytest.raises(EmptyFileNameError):
        validator.validate(b"notes", name, "text/plain", options)


def test_empty_allowed_types_reject_everything(validator):
    with pytest.raises(UnsupportedFileTypeError):
        validator.validate(b"%PDF-1.4", "a.pdf", "application/pdf", FileValidationOptions(allowed_types=[]))


def test_empty_allowed_extensions_reject_everything(validator):
    with pytest.raises(UnsupportedExtensionError):
        validator.validate(b"%PDF-1.4", "a.pdf", "application/pdf", FileValidationOptions(allowed_extensions=[]))


def test_short_buffer_fails_signature(validator):
    with pytest.raises(SignatureMismatchError):
        validator.validate(b"%P", "a.pdf", "application/pdf")


def test_file_extension_keeps_case():
    assert file_extension("Plan.Final.PDF") == ".PDF"
    assert file_extension(".pdf") == ""


def test_sqlite_engine_kwargs_skip_pool_settings():
    kwargs = DatabaseConfig(url="sqlite+aiosqlite:///files.db").engine_kwargs()

    assert "pool_size" not in kwargs
    assert "connect_args" not in kwargs


def test_asyncpg_engine_kwargs_set_application_name():
    kwargs = DatabaseConfig().engine_kwargs()

    assert kwargs["pool_size"] == 5
    assert kwargs["connect_args"]["server_settings"]["application_name"] == "report_file_store"


@pytest.mark.parametrize("num, expected", [(512, "512 B"), (1536, "1.5 KiB"), (50 * 1024 * 1024, "50.0 MiB")])
def test_human_size(num, expected):
    assert human_size(num) == expected
