# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Ok/Err results returned by services instead of raising."""

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from attrs import frozen

T = TypeVar("T")
E = TypeVar("E")


@frozen
class Ok(Generic[T]):
    """A successful outcome carrying ``value``."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    @property
    def ok_value(self) -> T:
        return self.value

    @property
    def err_value(self) -> None:
        return None


@frozen
class Err(Generic[E]):
    """A failed outcome carrying a message or error value."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    @property
    def ok_value(self) -> None:
        return None

    @property
    def err_value(self) -> E:
        return self.error


if TYPE_CHECKING:
    Result = Ok[T] | Err[E]
else:

    class Result(Generic[T, E]):
        """``Result[T, E]`` in annotations, checked at runtime as ``Ok | Err``."""

        def __class_getitem__(cls, params: Any) -> Any:
            return Ok[Any] | Err[Any]
