"""
Method descriptors used for batch dispatch.
"""
import abc
from collections.abc import Callable, Sequence
from typing import Any


class AbstractMethod(abc.ABC):
    """
    Describes one RPC call. `before_execution` runs right before the method
    is mapped to a payload and may finalize `parameters` from the context of
    the module that issues the call.
    """

    rpc_method: str = ""

    def __init__(self, parameters: Sequence[Any] | None = None):
        self.parameters: list[Any] = list(parameters or [])

    def before_execution(self, module_instance: Any) -> None:
        pass


class RpcMethod(AbstractMethod):
    """A method descriptor built at runtime, e.g. from CLI input."""

    def __init__(
        self,
        rpc_method: str,
        parameters: Sequence[Any] | None = None,
        input_formatter: Callable[[list[Any], Any], list[Any]] | None = None,
    ):
        super().__init__(parameters)
        self.rpc_method = rpc_method
        self._input_formatter = input_formatter

    def before_execution(self, module_instance: Any) -> None:
        if self._input_formatter is not None:
            self.parameters = list(self._input_formatter(self.parameters, module_instance))

    def __repr__(self) -> str:
        return f"RpcMethod({self.rpc_method!r}, {self.parameters!r})"
