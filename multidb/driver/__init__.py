"""Driver protocol and shared implementation."""

from multidb.driver._common import DriverAdapterBase, ExecutionResult, IdentifierQuotingMixin, convert_qmark_to_format

__all__ = ("DriverAdapterBase", "ExecutionResult", "IdentifierQuotingMixin", "convert_qmark_to_format")
