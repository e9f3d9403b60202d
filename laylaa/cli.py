#!/usr/bin/env python3
"""
LAYLAA Command Line Interface

Usage:
    python -m laylaa <command> [subcommand] [options]

Commands:
    catalog       List the token catalog
    select        Media id for a transaction hash (offline)
    burn          Burn tokens and write the burn proof
    issue         Trust lines and issuance for every catalog token
    balances      Holder balances across the catalog
    verify-proof  Validate a stored burn proof
    config        Configuration management

Wallets come from LAYLAA_ISSUER_SECRET and LAYLAA_HOLDER_SECRET (or the
config file); --issuer / --holder override the derived addresses.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, Callable, List, Optional

import yaml

from laylaa import __version__
from laylaa.errors import BurnProofError
from laylaa.ledger import LedgerClient
from laylaa.observability import LaylaaLayer, get_logger

logger = get_logger("cli", LaylaaLayer.CLI)


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.safe_dump(json.loads(json.dumps(data, default=str)), default_flow_style=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    else:
        return str(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, ""))[:40] for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        lines.append(" | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class LaylaaCLI:
    """
    Main CLI application.

    ``client_factory`` opens a LedgerClient for ledger-backed commands; the
    default connects to the configured XRPL endpoint.
    """

    def __init__(self, client_factory: Optional[Callable[[], LedgerClient]] = None):
        self._client_factory = client_factory
        self.parser = argparse.ArgumentParser(
            prog="laylaa",
            description="LAYLAA burn-to-proof toolkit",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"laylaa {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "table", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error output",
        )
        self.parser.add_argument("--config", "-c", help="YAML configuration file")
        self.parser.add_argument("--log-level", help="Override observability.log_level")

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        catalog = self.subparsers.add_parser("catalog", help="List the token catalog")
        catalog.add_argument("--mode", choices=["single", "multi"], help="Catalog mode")

        select = self.subparsers.add_parser("select", help="Media id for a transaction hash")
        select.add_argument("tx_hash", help="Transaction hash (hex)")
        select.add_argument("--mode", choices=["single", "multi"], help="Catalog mode")

        burn = self.subparsers.add_parser("burn", help="Burn tokens and write the proof")
        burn.add_argument("--token", "-t", required=True, help="Token symbol, e.g. LYA")
        burn.add_argument("--amount", "-a", help="Amount to burn (default: burn.default_amount)")
        burn.add_argument("--mode", choices=["single", "multi"], help="Catalog mode")
        burn.add_argument("--output-dir", "-o", help="Proof directory (default: proof.output_dir)")
        burn.add_argument("--no-save", action="store_true", help="Do not write the proof file")
        self._add_account_args(burn)

        issue = self.subparsers.add_parser("issue", help="Set up and issue every catalog token")
        issue.add_argument("--amount", "-a", help="Per-token amount (default: issuance.per_token_amount)")
        issue.add_argument("--mode", choices=["single", "multi"], help="Catalog mode")
        issue.add_argument("--skip-issuer-setup", action="store_true", help="Skip AccountSet default ripple")
        self._add_account_args(issue)

        balances = self.subparsers.add_parser("balances", help="Holder balances")
        balances.add_argument("--token", "-t", help="Single token symbol")
        balances.add_argument("--mode", choices=["single", "multi"], help="Catalog mode")
        self._add_account_args(balances)

        verify = self.subparsers.add_parser("verify-proof", help="Validate a stored burn proof")
        verify.add_argument("path", help="Proof JSON file")
        verify.add_argument("--recipient", help="Recipient key for circuit inputs")

        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")
        config_sub.add_parser("show", help="Show current configuration")
        get_cmd = config_sub.add_parser("get", help="Get a configuration value")
        get_cmd.add_argument("path", help="Dotted path, e.g. issuance.pacing_seconds")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    @staticmethod
    def _add_account_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--issuer", help="Issuer address (default: from issuer secret)")
        parser.add_argument("--holder", help="Holder address (default: from holder secret)")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            self._configure(parsed)
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except BurnProofError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
                print(format_output(e.context()), file=sys.stderr)
            return 1

    def _configure(self, args: argparse.Namespace) -> None:
        from laylaa.config import get_config_manager
        from laylaa.observability import configure_logging

        mgr = get_config_manager()
        if args.config:
            mgr.load_from_file(args.config)
        else:
            mgr.load_defaults()
        if args.log_level:
            mgr.set("observability.log_level", args.log_level)
        cfg = mgr.config.observability
        configure_logging(cfg.log_level.get(), cfg.log_format.get(), stream=sys.stderr)

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command.replace("-", "_")
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {args.command} {subcmd or ''}")

        return handler(args)

    # -- shared -----------------------------------------------------------------

    def _catalog(self, args: argparse.Namespace):
        from laylaa.catalog import catalog_for_mode
        from laylaa.config import get_config

        return catalog_for_mode(args.mode or get_config().catalog.mode.get())

    def _accounts(self, args: argparse.Namespace, need_holder: bool = True):
        from laylaa.config import get_config

        ledger = get_config().ledger
        issuer = args.issuer
        holder = args.holder
        if issuer is None or (need_holder and holder is None):
            from laylaa.xrpl_adapter import wallet_address

            if issuer is None:
                secret = ledger.issuer_secret.get()
                if not secret:
                    raise CLIError("Issuer address unknown: set LAYLAA_ISSUER_SECRET or --issuer")
                issuer = wallet_address(secret)
            if need_holder and holder is None:
                secret = ledger.holder_secret.get()
                if not secret:
                    raise CLIError("Holder address unknown: set LAYLAA_HOLDER_SECRET or --holder")
                holder = wallet_address(secret)
        return issuer, holder

    def _open_client(self) -> LedgerClient:
        if self._client_factory is not None:
            return self._client_factory()

        from laylaa.config import get_config
        from laylaa.xrpl_adapter import XrplLedgerClient

        ledger = get_config().ledger
        return XrplLedgerClient.connect(
            ledger.url.get(),
            seeds=(ledger.issuer_secret.get(), ledger.holder_secret.get()),
            timeout=ledger.timeout_seconds.get(),
        )

    # -- handlers ---------------------------------------------------------------

    def _handle_catalog(self, args: argparse.Namespace) -> Any:
        return [token.to_dict() for token in self._catalog(args)]

    def _handle_select(self, args: argparse.Namespace) -> Any:
        from laylaa.selector import MediaSelector

        catalog = self._catalog(args)
        token = MediaSelector(catalog).select_token(args.tx_hash)
        return {
            "tx_hash": args.tx_hash,
            "catalog": catalog.name,
            "media_id": token.catalog_index,
            "token_type": token.symbol,
            "media_format": token.media_format,
            "asset_type": token.asset_class.value,
        }

    def _handle_burn(self, args: argparse.Namespace) -> Any:
        from laylaa.burn import BurnCoordinator
        from laylaa.config import get_config
        from laylaa.errors import InvalidAmount
        from laylaa.ledger import explorer_account_url, explorer_transaction_url, ledger_session
        from laylaa.proof import ProofAssembler, save_proof

        cfg = get_config()
        catalog = self._catalog(args)
        issuer, holder = self._accounts(args)
        amount = args.amount if args.amount is not None else cfg.burn.default_amount.get()
        assembler = ProofAssembler(include_media_id=cfg.proof.include_media_id.get())

        with ledger_session(self._open_client) as client:
            coordinator = BurnCoordinator(
                client,
                catalog,
                issuer,
                assembler=assembler,
                success_code=cfg.burn.success_code.get(),
            )
            result = coordinator.burn(holder, args.token, amount)

        proof = result.proof
        explorer = cfg.ledger.explorer_url.get()
        output = {
            "transaction_hash": result.transaction_hash,
            "ledger_index": result.ledger_index,
            "media_id": proof.media_id,
            "media_format": proof.media_format,
            "proof_hash": proof.proof_hash,
            "explorer_url": explorer_transaction_url(explorer, result.transaction_hash),
            "holder_url": explorer_account_url(explorer, holder),
            "proof": proof.to_dict(),
        }
        if not args.no_save:
            directory = args.output_dir or cfg.proof.output_dir.get()
            try:
                output["proof_file"] = str(save_proof(directory, proof))
            except OSError as e:
                # the burn has settled; the proof is still printed below
                output["proof_file"] = None
                logger.error(
                    "Proof not saved",
                    error_code="proof_save_failed",
                    token_type=proof.token_type,
                    transaction_hash=result.transaction_hash,
                    reason=str(e),
                )
                print(f"Warning: proof not saved to {directory}: {e}", file=sys.stderr)
        try:
            output["circuit_inputs"] = proof.circuit_inputs(cfg.proof.recipient.get())
        except InvalidAmount as e:
            # fractional burns have no circuit representation
            output["circuit_inputs"] = None
            print(f"Warning: {e}", file=sys.stderr)
        return output

    def _handle_issue(self, args: argparse.Namespace) -> Any:
        from laylaa.config import get_config
        from laylaa.errors import LedgerUnavailable
        from laylaa.issuance import IssuanceOrchestrator
        from laylaa.ledger import ledger_session
        from laylaa.resilience import Pacer, RetryPolicy

        cfg = get_config().issuance
        catalog = self._catalog(args)
        issuer, holder = self._accounts(args)
        amount = args.amount if args.amount is not None else cfg.per_token_amount.get()
        policy = RetryPolicy(
            max_attempts=cfg.max_attempts.get(),
            base_delay_seconds=cfg.base_delay_seconds.get(),
            max_delay_seconds=cfg.max_delay_seconds.get(),
            jitter_factor=cfg.jitter_factor.get(),
            retryable_exceptions=(LedgerUnavailable,),
        )

        with ledger_session(self._open_client) as client:
            orchestrator = IssuanceOrchestrator(
                client,
                catalog,
                issuer,
                retry_policy=policy,
                pacing=Pacer(cfg.pacing_seconds.get()),
                trust_limit=cfg.trust_limit.get(),
            )
            report = orchestrator.setup_and_issue(
                holder, amount, configure_issuer=not args.skip_issuer_setup
            )

        if not report.success:
            print(
                f"Issued {report.success_count}/{report.total_attempted} token types",
                file=sys.stderr,
            )
        return report.to_dict()

    def _handle_balances(self, args: argparse.Namespace) -> Any:
        from laylaa.burn import BurnCoordinator
        from laylaa.ledger import ledger_session

        catalog = self._catalog(args)
        issuer, holder = self._accounts(args)

        with ledger_session(self._open_client) as client:
            coordinator = BurnCoordinator(client, catalog, issuer)
            if args.token:
                return [coordinator.balance(holder, args.token).to_dict()]
            return [b.to_dict() for b in coordinator.holdings(holder)]

    def _handle_verify_proof(self, args: argparse.Namespace) -> Any:
        from laylaa.errors import ProofVerificationError
        from laylaa.proof import load_proof

        try:
            proof = load_proof(args.path)
        except ProofVerificationError as e:
            raise CLIError(f"Invalid proof: {e}", exit_code=2) from e

        output = {
            "valid": True,
            "path": args.path,
            "proof_hash": proof.proof_hash,
            "media_id": proof.media_id,
            "token_type": proof.token_type,
        }
        if args.recipient:
            output["circuit_inputs"] = proof.circuit_inputs(args.recipient)
        return output

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from laylaa.config import get_config_manager
        mgr = get_config_manager()
        value = mgr.get(args.path)
        if mgr.is_secret(args.path):
            value = "***" if value else ""
        elif hasattr(value, "__dataclass_fields__"):
            value = mgr.config.to_dict()[args.path.split(".")[0]]
        return {"path": args.path, "value": value}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        from laylaa.config import get_config_manager
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        from laylaa.config import get_config_manager
        errors = get_config_manager().validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        from laylaa.config import get_config_manager
        return get_config_manager().export_schema()


def main() -> int:
    """CLI entry point."""
    cli = LaylaaCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
