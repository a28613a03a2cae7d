"""Resolve the effective network from command-line overrides and stored settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

from agent_payment.errors import MissingConfigError
from agent_payment.wallet.networks import list_profile_names

if TYPE_CHECKING:
    from agent_payment.config import PaymentSettings

DEFAULT_PROFILE = "base-sepolia"


class ConfigQuestion(BaseModel):
    field: str
    question: str
    examples: list[str] = Field(default_factory=list)
    default: Optional[str] = None


class MissingConfigPrompt(BaseModel):
    """Machine-readable request for the configuration a payment needs.

    Printed as JSON on stderr so that a driving agent can ask the user the
    listed questions and run the suggested command.
    """

    error: str = "missing_config"
    missing_fields: list[str]
    prompt: str
    questions: list[ConfigQuestion]
    hint: str

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)


@dataclass(frozen=True)
class NetworkOverrides:
    """Network values given on the command line."""

    rpc_url: str | None = None
    chain_id: int | None = None


@dataclass(frozen=True)
class ResolvedNetwork:
    rpc_url: str
    chain_id: int
    name: str | None = None


def build_missing_config_prompt(missing_fields: list[str]) -> MissingConfigPrompt:
    return MissingConfigPrompt(
        missing_fields=missing_fields,
        prompt="Configuration is incomplete. Please configure the network settings.",
        questions=[
            ConfigQuestion(
                field="network",
                question="Which blockchain network should be used for payments?",
                examples=list_profile_names(),
                default=DEFAULT_PROFILE,
            )
        ],
        hint="Run: agent-payment config use-network <network-name>",
    )


def _missing(rpc_url: str | None, chain_id: int | None) -> MissingConfigPrompt | None:
    missing_fields = []
    if not rpc_url:
        missing_fields.append("network.rpc_url")
    if chain_id is None:
        missing_fields.append("network.chain_id")
    if not missing_fields:
        return None
    return build_missing_config_prompt(missing_fields)


def resolve_network(
    overrides: NetworkOverrides, config: PaymentSettings
) -> ResolvedNetwork:
    """Merge overrides with stored settings, overrides winning.

    Raises
    ------
    MissingConfigError
        If no RPC URL or chain id is available from either source. The
        exception carries the structured prompt.
    """
    rpc_url = overrides.rpc_url or config.network.rpc_url
    chain_id = overrides.chain_id if overrides.chain_id is not None else config.network.chain_id

    prompt = _missing(rpc_url, chain_id)
    if prompt is not None:
        raise MissingConfigError(
            "Network configuration is incomplete. "
            "Run: agent-payment config use-network <network-name>",
            prompt=prompt,
        )
    return ResolvedNetwork(rpc_url=rpc_url, chain_id=chain_id, name=config.network.name)
