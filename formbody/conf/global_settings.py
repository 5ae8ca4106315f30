import inspect
import os
from functools import cached_property
from types import UnionType
from typing import (
    Annotated,
    Any,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from formbody import __version__
from formbody.types import Doc


def safe_get_type_hints(cls: type) -> dict[str, Any]:
    """
    Safely get type hints for a class, falling back to the raw annotations
    when they cannot be resolved.
    """
    try:
        return get_type_hints(cls, include_extras=True)
    except Exception:
        return cls.__annotations__


class BaseSettings:
    """
    Base of all the settings for any system.

    Every annotated attribute can be overridden by an environment variable
    with the same name in upper case prefixed by `__env_prefix__`, cast to the annotated type.
    """

    __type_hints__: dict[str, Any] = None
    __env_prefix__: str = ""
    __truthy__: set[str] = {"true", "1", "yes", "on", "y"}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.__type_hints__ = None

    def __init__(self, **kwargs: Any) -> None:
        cls = self.__class__
        if cls.__type_hints__ is None:
            cls.__type_hints__ = safe_get_type_hints(cls)

        for key, typ in cls.__type_hints__.items():
            if key.startswith("__"):
                continue
            base_type = self._extract_base_type(typ)

            if key in kwargs:
                value = kwargs.pop(key)
            else:
                env_value = os.getenv(f"{cls.__env_prefix__}{key.upper()}", None)
                if env_value is not None:
                    value = self._cast(env_value, base_type)
                else:
                    value = getattr(self, key, None)
            setattr(self, key, value)

        for key, value in kwargs.items():
            setattr(self, key, value)

        self.post_init()

    def post_init(self) -> None:
        """
        Post-initialization method that can be overridden by subclasses.
        """
        ...

    def _extract_base_type(self, typ: Any) -> Any:
        origin = get_origin(typ)
        if origin is Annotated:
            return get_args(typ)[0]
        return typ

    def _cast(self, value: str, typ: type[Any]) -> Any:
        """
        Casts the value to the specified type.
        If the type is `bool`, it checks for common truthy values.

        Raises:
            ValueError: If the value cannot be cast to the specified type.
        """
        try:
            origin = get_origin(typ)
            if origin is Union or origin is UnionType:
                non_none_types = [t for t in get_args(typ) if t is not type(None)]
                if len(non_none_types) == 1:
                    typ = non_none_types[0]
                else:
                    raise ValueError(f"Cannot cast to ambiguous Union type: {typ}")

            if typ is bool or str(typ) == "bool":
                return value.lower() in self.__truthy__
            return typ(value)
        except Exception:
            type_name = getattr(typ, "__name__", str(typ))
            raise ValueError(f"Cannot cast value '{value}' to type '{type_name}'") from None

    def dict(
        self,
        exclude_none: bool = False,
        upper: bool = False,
        exclude: set[str] | None = None,
        include_properties: bool = False,
    ) -> dict[str, Any]:
        """
        Dumps all the settings into a python dictionary.
        """
        result = {}
        exclude = exclude or set()

        for key in self.__type_hints__ or {}:
            if key in exclude or key.startswith("__"):
                continue
            value = getattr(self, key, None)
            if exclude_none and value is None:
                continue
            result_key = key.upper() if upper else key
            result[result_key] = value

        if include_properties:
            for name, _ in inspect.getmembers(
                type(self),
                lambda o: isinstance(
                    o,
                    (property, cached_property),
                ),
            ):
                if name in exclude or name in result:
                    continue
                value = getattr(self, name)
                if exclude_none and value is None:
                    continue
                result_key = name.upper() if upper else name
                result[result_key] = value

        return result


class Settings(BaseSettings):
    __env_prefix__ = "FORMBODY_"

    limit: Annotated[
        str,
        Doc(
            """
            Default maximum size of a decoded request body. Either a byte
            count or a string with a unit suffix such as `"100kb"` or `"1mb"`.
            """
        ),
    ] = "100kb"
    inflate: Annotated[
        bool,
        Doc(
            """
            Whether `gzip` and `deflate` encoded bodies are inflated
            transparently. When disabled, encoded bodies are rejected with a
            415.
            """
        ),
    ] = True
    type: Annotated[
        str,
        Doc(
            """
            The media type the urlencoded middleware acts on by default.
            """
        ),
    ] = "application/x-www-form-urlencoded"
    parameter_limit: Annotated[
        float,
        Doc(
            """
            Default maximum number of parameters accepted in a body. Use
            `inf` to disable the ceiling.
            """
        ),
    ] = 1000
    allow_dots: Annotated[
        bool,
        Doc(
            """
            Whether the extended decoder also treats `a.b` as the key path
            `a[b]`.
            """
        ),
    ] = False
    logging_level: Annotated[
        str,
        Doc(
            """
            The level used by the default logging configuration.
            """
        ),
    ] = "INFO"

    @property
    def version(self) -> str:
        return __version__
