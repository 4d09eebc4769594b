from pageforge.errors import (
    INVALID_DEFAULT_EXPORT,
    CompileError,
    ConfigError,
    ExportError,
    InvalidDefaultExportError,
    InvalidPagesError,
    PageAnalysisError,
    PageforgeError,
    is_invalid_default_export,
)


def test_error_hierarchy() -> None:
    for cls in (ConfigError, CompileError, PageAnalysisError, ExportError, InvalidPagesError):
        assert issubclass(cls, PageforgeError)
    assert issubclass(InvalidDefaultExportError, PageAnalysisError)


def test_retryable_flag_defaults_to_false() -> None:
    assert PageforgeError("x").retryable is False
    assert PageforgeError("x", retryable=True).retryable is True


def test_invalid_default_export_detection() -> None:
    assert is_invalid_default_export(InvalidDefaultExportError())
    assert is_invalid_default_export(RuntimeError(INVALID_DEFAULT_EXPORT))
    assert not is_invalid_default_export(PageAnalysisError("conflicting hooks"))


def test_invalid_pages_message() -> None:
    single = InvalidPagesError(["/b"])
    assert str(single) == (
        "Build optimization failed: found page without a valid component as default export "
        "in \npages/b\n"
    )
    many = InvalidPagesError(["/z", "/a"])
    assert many.pages == ["/a", "/z"]
    assert "found pages without" in str(many)
    assert str(many).endswith("pages/a\npages/z\n")
