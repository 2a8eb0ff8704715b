"""
Template provider for the network and cluster stacks.

Bodies ship as package data and are forwarded to CloudFormation untouched.
Each template's parameter names are declared here rather than parsed out of
the body.
"""

from dataclasses import dataclass
from importlib import resources

NETWORK = "network"
CLUSTER = "cluster"


@dataclass(frozen=True)
class Template:
    name: str
    body: str
    parameters: frozenset[str]

    def undeclared(self, keys) -> list[str]:
        """Keys that the template does not declare as parameters."""
        return sorted(k for k in keys if k not in self.parameters)


_SOURCES = {
    NETWORK: ("network-stack.yml", frozenset()),
    CLUSTER: ("cluster-stack.yml", frozenset({
        "VpcId",
        "VpcPrivateSubnet1Id",
        "VpcPrivateSubnet2Id",
        "KeyName",
        "AuthorizedUsersUrl",
        "InstanceType",
        "MaxSize",
        "DesiredCapacity",
        "MinSize",
        "DockerHubUsername",
        "DockerHubEmail",
        "DockerHubPassword",
        "ECSCluster",
        "LogspoutTarget",
        "DatadogApiKey",
    })),
}


def get_template(name: str) -> Template:
    try:
        filename, parameters = _SOURCES[name]
    except KeyError:
        raise KeyError(f"Unknown template {name!r}, expected one of {sorted(_SOURCES)}") from None
    body = resources.files(__name__).joinpath(filename).read_text(encoding="utf-8")
    return Template(name=name, body=body, parameters=parameters)


class TemplateProvider:
    """Loads templates on first use and keeps them for the process."""

    def __init__(self):
        self._cache: dict[str, Template] = {}

    def get(self, name: str) -> Template:
        if name not in self._cache:
            self._cache[name] = get_template(name)
        return self._cache[name]
