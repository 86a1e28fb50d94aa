#!/usr/bin/env python3
"""
Ledger Reconciliation System - Main Entry Point.

Command-line access to the pipelines:
    - e-invoice ↔ accounting VAT reconciliation
    - general ledger (kebir) analysis
    - SMMM ↔ FIRMA current-account comparison

Usage:
    Command Line:
        python main.py --einvoice efatura_ocak.xlsx efatura_subat.xlsx \\
                       --accounting kdv_391.xlsx --output report.json
        python main.py --ledger kebir_2024.xlsx --output kebir.json

    Python:
        from main import run_reconciliation
        report = run_reconciliation(["efatura.xlsx"], ["muhasebe.xlsx"])

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from reconciler.utils.logger import ROOT_LOGGER_NAME, get_logger, setup_logger_from_config
from reconciler.utils.helpers import ensure_directory
from reconciler.utils.exceptions import ReconcilerError
from reconciler.mapping.schemas import DocumentType, ReconciliationMode
from reconciler.matching.exclusions import ExclusionFilter
from reconciler.ledger.comparison import AccountComparator, ComparisonResult, comparison_summary
from reconciler.execution import (
    ExecutionHost,
    ParseRequest,
    ReconcileRequest,
    ReconciliationBatch,
)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Ledger Reconciliation System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Reconcile sales VAT:
        python main.py --einvoice efatura.xlsx --accounting kdv.xlsx

    Reconcile purchases with matrah lines:
        python main.py --mode PURCHASE --einvoice gelen.xlsx \\
                       --accounting 191.xlsx --matrah 153.xlsx

    Analyze a general ledger:
        python main.py --ledger kebir.xlsx --output kebir.json

    Compare accountant and company current accounts:
        python main.py --cari-smmm smmm_cari.xlsx --cari-firma firma_cari.xlsx
        """
    )

    # Reconciliation inputs
    parser.add_argument(
        "--einvoice", "-e",
        nargs="+",
        default=[],
        help="E-invoice list files (processed in the given order)"
    )

    parser.add_argument(
        "--accounting", "-a",
        nargs="+",
        default=[],
        help="Accounting VAT ledger files"
    )

    parser.add_argument(
        "--matrah", "-m",
        nargs="+",
        default=[],
        help="Accounting taxable-base (matrah) ledger files"
    )

    parser.add_argument(
        "--mode",
        choices=[m.value for m in ReconciliationMode],
        default=ReconciliationMode.SALES.value,
        help="SALES compares credit-side VAT, PURCHASE debit-side VAT (default: SALES)"
    )

    parser.add_argument(
        "--tolerance", "-t",
        type=float,
        default=None,
        help="Largest amount difference still considered reconciled"
    )

    parser.add_argument(
        "--mappings",
        type=str,
        default=None,
        help="JSON file with column mappings keyed by document type"
    )

    parser.add_argument(
        "--exclude-cancelled",
        action="store_true",
        help="Drop e-invoices whose status reads as cancelled/rejected"
    )

    # Ledger input
    parser.add_argument(
        "--ledger", "-l",
        type=str,
        default=None,
        help="General ledger (kebir) file to analyze"
    )

    # Current-account comparison inputs
    parser.add_argument(
        "--cari-smmm",
        type=str,
        default=None,
        help="Current-account ledger kept by the accountant (SMMM)"
    )

    parser.add_argument(
        "--cari-firma",
        type=str,
        default=None,
        help="Current-account ledger kept by the company (FIRMA)"
    )

    parser.add_argument(
        "--manual-matches",
        type=str,
        default=None,
        help="JSON file mapping SMMM account codes to FIRMA account codes"
    )

    # Output and configuration
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="JSON output file (default: print to stdout)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    if bool(args.cari_smmm) != bool(args.cari_firma):
        parser.error("--cari-smmm and --cari-firma must be given together")

    if not args.ledger and not args.cari_smmm and not (args.einvoice and args.accounting):
        parser.error(
            "either --ledger, --cari-smmm/--cari-firma or both --einvoice and --accounting are required"
        )

    return args


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)
    logger = setup_logger_from_config()

    if args.debug:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("LEDGER RECONCILIATION SYSTEM")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")

    return config


def load_mappings(path: Optional[str]) -> Dict[str, Dict[str, str]]:
    """Read a JSON object file: column mappings keyed by DocumentType value, or manual matches."""
    if not path:
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def parse_batch(
    paths: List[str],
    document_type: DocumentType,
    mode: ReconciliationMode,
    host: ExecutionHost,
    mapping: Optional[Dict[str, str]] = None
) -> ReconciliationBatch:
    """Parse the files of one document type in order."""
    batch = ReconciliationBatch(document_type, mode=mode, host=host, mapping=mapping)
    for path in paths:
        batch.add_path(path)
    batch.process_all()
    return batch


def run_reconciliation(
    einvoice_paths: List[str],
    accounting_paths: List[str],
    matrah_paths: Optional[List[str]] = None,
    mode: str = ReconciliationMode.SALES.value,
    tolerance: Optional[float] = None,
    mappings: Optional[Dict[str, Dict[str, str]]] = None,
    exclude_cancelled: bool = False,
    config_path: Optional[str] = None
):
    """
    Run the reconciliation pipeline.

    Args:
        einvoice_paths: E-invoice list files.
        accounting_paths: Accounting VAT ledger files.
        matrah_paths: Accounting matrah ledger files.
        mode: SALES or PURCHASE.
        tolerance: Largest difference still considered reconciled.
        mappings: Column mappings keyed by document type value.
        exclude_cancelled: Drop cancelled/rejected e-invoices.
        config_path: Optional custom configuration file path.

    Returns:
        ReconciliationReport.

    Raises:
        ReconcilerError: If any input file cannot be parsed or reconciliation fails.

    Example:
        >>> report = run_reconciliation(["efatura.xlsx"], ["kdv.xlsx"])
        >>> report.summary()['amount_mismatches']
        2
    """
    logger = get_logger(__name__)
    ConfigurationManager(config_path)

    mode = ReconciliationMode(mode)
    mappings = mappings or {}

    with ExecutionHost() as host:
        batches = {}
        for document_type, paths in (
            (DocumentType.E_INVOICE, einvoice_paths),
            (DocumentType.ACCOUNTING_VAT, accounting_paths),
            (DocumentType.ACCOUNTING_MATRAH, matrah_paths or []),
        ):
            batch = parse_batch(paths, document_type, mode, host, mappings.get(document_type.value))
            if batch.failed:
                error = batch.last_error
                raise ReconcilerError(
                    f"{document_type.value} file {error.file_index + 1}/{len(batch.files)} "
                    f"({error.filename}) could not be parsed: {error.error}",
                    {'document_type': document_type.value, 'filename': error.filename}
                )
            batches[document_type] = batch

        einvoices = batches[DocumentType.E_INVOICE].records
        exclusions = None
        if exclude_cancelled:
            exclusions = ExclusionFilter().suggest(einvoices)
            logger.info(
                f"Excluding statuses {sorted(exclusions.statuses)} "
                f"and validity statuses {sorted(exclusions.validity_statuses)}"
            )

        response = host.run(ReconcileRequest(
            einvoices=einvoices,
            vat_records=batches[DocumentType.ACCOUNTING_VAT].records,
            matrah_records=batches[DocumentType.ACCOUNTING_MATRAH].records,
            tolerance=tolerance,
            exclusions=exclusions,
        ))

    if not response.success:
        raise ReconcilerError(response.error or "Reconciliation failed")
    return response.payload


def run_ledger_analysis(ledger_path: str, config_path: Optional[str] = None):
    """
    Analyze a general ledger file.

    Returns:
        LedgerAnalysis.

    Raises:
        ReconcilerError: If the file cannot be parsed.
    """
    ConfigurationManager(config_path)
    path = Path(ledger_path)

    with ExecutionHost() as host:
        response = host.run(ParseRequest(
            data=path.read_bytes(),
            filename=path.name,
            document_type=DocumentType.GENERAL_LEDGER,
        ))

    if not response.success:
        raise ReconcilerError(response.error or f"Could not analyze {path.name}")
    return response.payload


def parse_current_account(
    path: Path,
    host: ExecutionHost,
    mapping: Optional[Dict[str, str]] = None
):
    """Parse one current-account ledger through the host."""
    response = host.run(ParseRequest(
        data=path.read_bytes(),
        filename=path.name,
        document_type=DocumentType.CURRENT_ACCOUNT,
        mapping=mapping,
    ))
    if not response.success:
        raise ReconcilerError(response.error or f"Could not parse {path.name}")
    return response.payload


def run_current_account_comparison(
    smmm_path: str,
    firma_path: str,
    mappings: Optional[Dict[str, Dict[str, str]]] = None,
    manual_matches: Optional[Dict[str, str]] = None,
    config_path: Optional[str] = None
) -> List[ComparisonResult]:
    """
    Compare the accountant's and the company's current-account ledgers.

    Args:
        smmm_path: Accountant's (SMMM) ledger file.
        firma_path: Company's (FIRMA) ledger file.
        mappings: Column mappings keyed by document type value; the
            CURRENT_ACCOUNT entry applies to both files.
        manual_matches: SMMM account code → FIRMA account code.
        config_path: Optional custom configuration file path.

    Returns:
        List of ComparisonResult, problems first.

    Raises:
        ReconcilerError: If either file cannot be parsed.
    """
    ConfigurationManager(config_path)
    mapping = (mappings or {}).get(DocumentType.CURRENT_ACCOUNT.value)

    with ExecutionHost() as host:
        smmm = parse_current_account(Path(smmm_path), host, mapping)
        firma = parse_current_account(Path(firma_path), host, mapping)

    return AccountComparator().compare(smmm.accounts, firma.accounts, manual_matches)


def write_output(data: dict, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if not output:
        print(text)
        return
    output_path = Path(output)
    ensure_directory(output_path.parent)
    output_path.write_text(text, encoding='utf-8')


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        args = parse_arguments(argv)
        initialize_system(args)
        logger = get_logger(__name__)

        output = {}

        if args.einvoice and args.accounting:
            report = run_reconciliation(
                einvoice_paths=args.einvoice,
                accounting_paths=args.accounting,
                matrah_paths=args.matrah,
                mode=args.mode,
                tolerance=args.tolerance,
                mappings=load_mappings(args.mappings),
                exclude_cancelled=args.exclude_cancelled,
                config_path=args.config,
            )
            output['reconciliation'] = report.to_dict()
            logger.info(f"Reconciliation summary: {report.summary()}")

        if args.cari_smmm:
            results = run_current_account_comparison(
                args.cari_smmm,
                args.cari_firma,
                mappings=load_mappings(args.mappings),
                manual_matches=load_mappings(args.manual_matches),
                config_path=args.config,
            )
            output['current_account_comparison'] = {
                'summary': comparison_summary(results),
                'results': [r.to_dict() for r in results],
            }
            logger.info(f"Current-account comparison: {comparison_summary(results)}")

        if args.ledger:
            analysis = run_ledger_analysis(args.ledger, config_path=args.config)
            output['ledger'] = analysis.to_dict()
            logger.info(
                f"Ledger: {analysis.total_lines} lines, "
                f"complexity {analysis.complexity_score}"
            )

        write_output(output, args.output)

        logger.info("=" * 60)
        logger.info("Processing complete.")
        logger.info("=" * 60)
        return 0

    except (FileNotFoundError, ReconcilerError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if "--debug" in sys.argv:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
