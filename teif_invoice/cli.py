"""
Command-line interface for the TEIF Invoice Service.

Provides three main commands:
- template: Write the pre-filled xlsx template of a company
- validate: Validate pasted template data and print every error
- generate: Produce the TEIF XML invoice from pasted template data
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .config import REFERENCE_DATA_PATH, CollaboratorError, logger
from .lookups import JsonLookupSource, LookupMaps, load_lookup_maps
from .schemas import SenderCompany
from .validator import build_template_for, format_errors_text, generate_invoice_xml, validate_pasted_data


# Create Typer app
app = typer.Typer(
    name="teif-invoice",
    help="TEIF electronic invoice generation CLI",
    add_completion=False,
)


def load_company(path: Path) -> SenderCompany:
    """Read one sender company record from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return SenderCompany.model_validate(json.load(f))


def load_maps(path: Path) -> LookupMaps:
    return asyncio.run(load_lookup_maps(JsonLookupSource(path)))


def _load_inputs(company_file: Path, reference_data: Path) -> tuple[SenderCompany, LookupMaps]:
    try:
        return load_company(company_file), load_maps(reference_data)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in company file: {e}", err=True)
        raise typer.Exit(code=1)
    except ValidationError as e:
        typer.echo(f"Error: Invalid company record: {e}", err=True)
        raise typer.Exit(code=1)
    except CollaboratorError as e:
        typer.echo(f"Error: {e}", err=True)
        logger.error(f"Reference data unavailable: {e}")
        raise typer.Exit(code=1)


COMPANY_OPTION = typer.Option(
    ...,
    "--company",
    "-c",
    help="JSON file containing the sender company record",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)

REFERENCE_DATA_OPTION = typer.Option(
    REFERENCE_DATA_PATH,
    "--reference-data",
    "-d",
    help="JSON file containing the TEIF reference code lists",
)

INPUT_OPTION = typer.Option(
    ...,
    "--input",
    "-i",
    help="Text file containing both tables copied from the template",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)


@app.command()
def template(
    company_file: Path = COMPANY_OPTION,
    reference_data: Path = REFERENCE_DATA_OPTION,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output xlsx file path (defaults to Facture_Template_<ddMMyy>.xlsx)",
    ),
) -> None:
    """
    Write the invoice template pre-filled with the company's data.
    """
    company, maps = _load_inputs(company_file, reference_data)

    template_file = build_template_for(company, maps)
    output = output or Path(template_file.filename)
    output.write_bytes(template_file.content)

    typer.echo(f"[OK] Template for {company.name} saved to: {output}")


@app.command()
def validate(
    input_file: Path = INPUT_OPTION,
    company_file: Path = COMPANY_OPTION,
    reference_data: Path = REFERENCE_DATA_OPTION,
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if the data has validation errors",
    ),
) -> None:
    """
    Validate pasted template data.

    Reads the text copied from both template sheets, runs every check and
    prints the complete error list.
    """
    typer.echo(f"Validating pasted data from: {input_file}")
    company, maps = _load_inputs(company_file, reference_data)

    raw_text = input_file.read_text(encoding="utf-8")
    result = validate_pasted_data(raw_text, company, maps)

    typer.echo("\n" + format_errors_text(result.success, result.errors, result.row_count))

    if fail_on_invalid and not result.success:
        raise typer.Exit(code=1)


@app.command()
def generate(
    input_file: Path = INPUT_OPTION,
    company_file: Path = COMPANY_OPTION,
    reference_data: Path = REFERENCE_DATA_OPTION,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output XML file path (defaults to invoice_<number>_<timestamp>.xml)",
    ),
) -> None:
    """
    Generate the TEIF XML invoice from pasted template data.

    Exits with status 1 and prints every error when the invoice cannot be
    produced.
    """
    typer.echo(f"Generating invoice from: {input_file}")
    company, maps = _load_inputs(company_file, reference_data)

    raw_text = input_file.read_text(encoding="utf-8")
    result = generate_invoice_xml(raw_text, company, maps)

    if not result.success:
        typer.echo("\n" + format_errors_text(result.success, result.errors), err=True)
        raise typer.Exit(code=1)

    output = output or Path(result.filename)
    output.write_text(result.xml, encoding="utf-8")

    typer.echo(f"\n[OK] Invoice XML saved to: {output}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"TEIF Invoice Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
