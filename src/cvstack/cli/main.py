"""
Main CLI entry point for cvstack.

Provides subcommands:
  - cvstack fit: Fit a cross-validated ensemble
  - cvstack nested-cv: Evaluate the ensemble with nested cross-validation
  - cvstack survival: Fit a discrete-hazard or IPCW survival ensemble
  - cvstack predict: Predict new data with a saved model
"""

import click

from cvstack import __version__


def _common_options(func):
    """--config / --infile / --outdir / --override shared by the fitting commands."""
    options = [
        click.option(
            "--config",
            "-c",
            type=click.Path(exists=True),
            help="Path to YAML configuration file",
        ),
        click.option(
            "--infile",
            type=click.Path(exists=True),
            default=None,
            help="Input CSV or Parquet file (overrides 'infile' in the config)",
        ),
        click.option(
            "--outdir",
            type=click.Path(),
            default=None,
            help="Output directory (overrides 'outdir' in the config)",
        ),
        click.option(
            "--override",
            multiple=True,
            help="Override config values (format: key=value or nested.key=value)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="cvstack")
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv)",
)
@click.pass_context
def cli(ctx, verbose):
    """
    cvstack: cross-validated stacking ensembles with survival extensions.

    Combines a library of screening + learning algorithms with weights chosen
    by cross-validation, and evaluates the result with nested CV.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("fit")
@_common_options
@click.pass_context
def fit(ctx, config, infile, outdir, override):
    """Fit the ensemble and write model.joblib, cv_risk.csv and weights.json."""
    from cvstack.cli.fit import run_fit

    run_fit(
        config_file=config,
        infile=infile,
        outdir=outdir,
        overrides=list(override),
        verbose=ctx.obj.get("verbose", 0),
    )


@cli.command("nested-cv")
@_common_options
@click.pass_context
def nested_cv(ctx, config, infile, outdir, override):
    """Nested cross-validation: risk_table.csv and winner_counts.csv."""
    from cvstack.cli.nested_cv import run_nested_cv

    run_nested_cv(
        config_file=config,
        infile=infile,
        outdir=outdir,
        overrides=list(override),
        verbose=ctx.obj.get("verbose", 0),
    )


@cli.command("survival")
@_common_options
@click.pass_context
def survival(ctx, config, infile, outdir, override):
    """Fit a survival ensemble (survival.mode = hazard | ipcw).

    Example:
        cvstack survival --infile cohort.csv --override survival.horizon=5
    """
    from cvstack.cli.survival import run_survival

    run_survival(
        config_file=config,
        infile=infile,
        outdir=outdir,
        overrides=list(override),
        verbose=ctx.obj.get("verbose", 0),
    )


@cli.command("predict")
@click.option(
    "--model",
    "model_path",
    type=click.Path(exists=True),
    required=True,
    help="Saved model (model.joblib written by fit or survival)",
)
@click.option(
    "--infile",
    type=click.Path(exists=True),
    required=True,
    help="Input CSV or Parquet file with the fitted covariates",
)
@click.option(
    "--outfile",
    type=click.Path(),
    default=None,
    help="Output CSV (default: <infile>_preds.csv)",
)
@click.option(
    "--id-col",
    default=None,
    help="Column copied from the input onto the predictions",
)
@click.option(
    "--discrete",
    is_flag=True,
    help="Use the discrete winner instead of the weighted blend",
)
@click.pass_context
def predict(ctx, **kwargs):
    """Predict new data with a saved model."""
    from cvstack.cli.predict import run_predict

    run_predict(**kwargs, verbose=ctx.obj.get("verbose", 0))


if __name__ == "__main__":
    cli()
