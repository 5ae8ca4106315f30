from __future__ import annotations

from collections.abc import Generator, Iterable, Mapping
from typing import Any, cast

from multidict import CIMultiDict, MultiMapping


class Header(CIMultiDict):
    """Container used for request headers.
    It is a subclass of  [CIMultiDict](https://multidict.readthedocs.io/en/stable/multidict.html#cimultidictproxy)
    so lookups are case-insensitive.
    """

    def __init__(
        self,
        value: MultiMapping
        | Mapping[str, Any]
        | Iterable[tuple[bytes | str, bytes | str]]
        | None = None,
    ) -> None:
        # this way we can handle None, like specified
        if not value:
            value = []

        assert isinstance(value, (dict, Iterable)), (
            "The headers must be in the format of a Iterable of tuples or dictionary."
        )

        headers: list[tuple[str, Any]] = self.parse_headers(value)
        super().__init__(headers)

    def parse_headers(self, value: Any) -> list[tuple[str, Any]]:
        """
        Parses the headers and validates if its bytes or str.
        """
        headers: list[tuple[str, Any]] = []

        if isinstance(value, Mapping):
            for k, v in value.items():
                key = k.decode("latin-1") if isinstance(k, bytes) else k
                if not isinstance(v, (list, tuple)):
                    v = [v]
                for header_value in v:
                    header_value = (
                        header_value.decode("latin-1")
                        if isinstance(header_value, bytes)
                        else header_value
                    )
                    assert isinstance(header_value, str)
                    headers.append((key, header_value))
        elif isinstance(value, Iterable):
            for k, v in value:
                key = k.decode("latin-1") if isinstance(k, bytes) else k
                header_value = v.decode("latin-1") if isinstance(v, bytes) else v
                assert isinstance(header_value, str)
                headers.append((key, header_value))

        return headers

    @classmethod
    def ensure_header_instance(cls, scope: Any) -> Header:
        """
        Ensure the headers are an instance of Header.
        This way reparsing can be prevented.
        It is applicable on scope or messages.
        """
        headers = scope.get("headers", ())
        if not isinstance(headers, Header):
            scope["headers"] = cls(headers)
        return cast(Header, scope["headers"])

    def encoded_multi_items(self) -> Generator[tuple[bytes, bytes], None, None]:
        """Get all keys and values, including duplicates, bytes encoded for ASGI."""
        return (
            (key.lower().encode("latin-1"), value.encode("latin-1", errors="surrogateescape"))
            for key, value in self.items()
        )

    def __iter__(self) -> Generator[tuple[bytes, bytes], None, None]:  # type: ignore[override]
        """For compatibility with ASGI."""
        return self.encoded_multi_items()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        as_dict = dict(self.items())
        if len(as_dict) == len(self):
            return f"{class_name}({as_dict!r})"
        return class_name
