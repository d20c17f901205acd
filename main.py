from typing import Annotated, Literal

from pydantic import BaseModel, Field

from argora import *


class Globals(BaseModel):
    verbose: Annotated[bool, arg(alias="v", description="Print what is being done")] = False


class BuildArgs(BaseModel):
    output: Annotated[str, arg(alias="o", description="Output directory", completion={"type": "directory"})] = "dist"
    format: Annotated[Literal["html", "pdf"], arg(description="Output format")] = "html"
    pages: Annotated[list[str], arg(
        positional=True,
        placeholder="PAGE",
        description="Pages to build",
        completion={"type": "file", "extensions": ["md"]},
    )] = Field(default_factory=list)


class DeployArgs(BaseModel):
    env: Annotated[str, arg(
        alias="e",
        env="SITE_ENV",
        description="Target environment",
        completion={"choices": ["dev", "staging", "prod"]},
    )] = "dev"
    branch: Annotated[str, arg(
        description="Branch to deploy",
        completion={"shell_command": "git branch --format='%(refname:short)'"},
    )] = "main"


site = Command("site", descr="Static site tooling", version="0.1.0", examples=[
    "site build -o public index.md",
    'eval "$(site completion bash)"',
])


@site.command
def build(args: BuildArgs):
    """Build the site."""
    logger.log(f"building {len(args.pages) or 'all'} page(s) as {args.format} into {args.output}")


@site.command
def deploy(args: DeployArgs):
    """Deploy the site."""
    logger.log(f"deploying {args.branch} to {args.env}")


if __name__ == '__main__':
    run_main(with_completion(site, global_args=Globals), global_args=Globals)
