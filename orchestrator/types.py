import click
from eth_utils import to_checksum_address
from packaging.version import InvalidVersion, Version


class SemanticVersion(click.ParamType):
    name = "semantic_version"

    def convert(self, value, param, ctx):
        try:
            Version(value)
        except InvalidVersion:
            self.fail(f"{value} is not a valid semantic version, i.e 1.2.3", param, ctx)
        return value


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        try:
            value = to_checksum_address(value=value)
        except ValueError:
            self.fail("Invalid ethereum address", param, ctx)
        else:
            return value
