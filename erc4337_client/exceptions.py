from dataclasses import dataclass
from enum import Enum
import re
from typing import Any


class ConfigurationExceptionCode(Enum):
    AccountNotFound = 1
    ClientNotFound = 2
    UnknownEntryPoint = 3
    UnsupportedEntryPointVersion = 4
    InvalidAccountVersion = 5
    InvalidMiddleware = 6


@dataclass
class ConfigurationException(Exception):
    exception_code: ConfigurationExceptionCode
    message: str


class ValidationExceptionCode(Enum):
    InvalidFields = -32602


@dataclass
class ValidationException(Exception):
    exception_code: ValidationExceptionCode
    message: str


class RpcErrorCode(Enum):
    InternalError = -32603


@dataclass
class RpcException(Exception):
    code: int
    message: str
    data: Any = None

    def __str__(self) -> str:
        return f"RPC error {self.code}: {self.message}"


class SenderAlreadyDeployedException(RpcException):
    pass


class InitCodeFailedException(RpcException):
    pass


class AccountNotDeployedException(RpcException):
    pass


class InsufficientFundsException(RpcException):
    pass


class SignatureExpiredOrNotDueException(RpcException):
    pass


class AccountValidationRevertedException(RpcException):
    pass


class InvalidSignatureException(RpcException):
    pass


class InvalidAccountNonceException(RpcException):
    pass


class PaymasterException(RpcException):
    pass


class GasLimitException(RpcException):
    pass


class BundlerConfigurationException(RpcException):
    pass


# EntryPoint revert reasons, matched against the lower cased message
BUNDLER_ERROR_PATTERNS: list[tuple[re.Pattern, type[RpcException]]] = [
    (re.compile(r"aa10"), SenderAlreadyDeployedException),
    (re.compile(r"aa1[345]"), InitCodeFailedException),
    (re.compile(r"aa20"), AccountNotDeployedException),
    (re.compile(r"aa21"), InsufficientFundsException),
    (re.compile(r"aa22"), SignatureExpiredOrNotDueException),
    (re.compile(r"aa23"), AccountValidationRevertedException),
    (re.compile(r"aa24"), InvalidSignatureException),
    (re.compile(r"aa25"), InvalidAccountNonceException),
    (re.compile(r"aa3[0-4]"), PaymasterException),
    (re.compile(r"aa4[01]|aa9[45]"), GasLimitException),
    (re.compile(r"aa5[01]"), PaymasterException),
    (re.compile(r"aa9[0-36]"), BundlerConfigurationException),
]


def classify_bundler_error(exception: RpcException) -> RpcException:
    if type(exception) is not RpcException:
        return exception
    message = exception.message.lower()
    for pattern, exception_class in BUNDLER_ERROR_PATTERNS:
        if pattern.search(message) is not None:
            return exception_class(
                exception.code, exception.message, exception.data)
    return exception


@dataclass
class WaitForUserOperationReceiptTimeoutException(Exception):
    user_operation_hash: str

    def __str__(self) -> str:
        return (
            "Timed out while waiting for user operation with hash "
            f'"{self.user_operation_hash}" to be confirmed.'
        )
