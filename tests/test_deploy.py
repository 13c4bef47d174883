"""
Tests for the deploy tooling.

Commands never run: a FakeRunner records every argv and answers from a
table of scripted results keyed by argv prefix.
"""

import io
import json
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from app.deploy.cli import deploy_env_main, destroy_preview_main
from app.deploy.commands import CommandResult, CommandRunner, DeployError, require_env
from app.deploy.destroy import destroy_preview
from app.deploy.env import (
    FLY_CONFIG,
    REPO_ROOT,
    DeployResult,
    DeployTarget,
    deploy_env,
    list_secret_names,
    preview_database_name,
)
from app.deploy.preview import (
    build_payload,
    deploy_preview,
    preview_names,
    render_payload,
    sync_branch,
)

ALL_SECRETS = json.dumps([{"Name": "JWT_SECRET_KEY"}, {"Name": "MONGODB_URL"}])


class FakeRunner(CommandRunner):
    """Records calls; answers with the longest matching scripted prefix, else success."""

    def __init__(self, scripted: Optional[Dict[Tuple[str, ...], CommandResult]] = None, missing=()):
        super().__init__()
        self.scripted = dict(scripted or {})
        self.missing = set(missing)
        self.calls: List[List[str]] = []
        self.inputs: Dict[Tuple[str, ...], Optional[str]] = {}

    def execute(self, args: Sequence[str], input=None, cwd=None) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        self.inputs[tuple(args)] = input

        best = None
        for prefix in self.scripted:
            if tuple(args[:len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return CommandResult(args=args, returncode=0)

        scripted = self.scripted[best]
        return CommandResult(args=args, returncode=scripted.returncode, stdout=scripted.stdout, stderr=scripted.stderr)

    def which(self, name: str) -> Optional[str]:
        return None if name in self.missing else f"/usr/bin/{name}"

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[:len(prefix)]) == prefix for call in self.calls)


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(args=[], returncode=0, stdout=stdout)


def failed(stderr: str = "boom") -> CommandResult:
    return CommandResult(args=[], returncode=1, stderr=stderr)


class FakeCheck:
    def __init__(self):
        self.urls = []

    def __call__(self, url, out=None):
        self.urls.append(url)
        return 1


@pytest.fixture
def environ():
    return {
        "FLY_API_TOKEN": "fly-token",
        "CHATWAVE_JWT_SECRET_KEY": "jwt-secret",
        "CHATWAVE_MONGODB_URL": "mongodb://db.example:27017",
    }


@pytest.fixture
def out():
    return io.StringIO()


class TestPreconditions:

    def test_missing_fly_token(self, out):
        runner = FakeRunner()

        with pytest.raises(DeployError, match="FLY_API_TOKEN must be set"):
            deploy_env(DeployTarget(env="dev", fly_app="chatwave-dev"), runner=runner, environ={}, out=out)

        assert runner.calls == []

    def test_missing_command(self, environ, out):
        runner = FakeRunner(missing={"fly"})

        with pytest.raises(DeployError, match="Required command not found: fly"):
            deploy_env(DeployTarget(env="dev", fly_app="chatwave-dev"), runner=runner, environ=environ, out=out)

    def test_fly_auth_failure(self, environ, out):
        runner = FakeRunner({("fly", "auth", "whoami"): failed()})

        with pytest.raises(DeployError, match="Fly authentication is missing"):
            deploy_env(DeployTarget(env="dev", fly_app="chatwave-dev"), runner=runner, environ=environ, out=out)

        assert not runner.called("fly", "deploy")

    @pytest.mark.parametrize("target,message", [
        (DeployTarget(env="dev", fly_app=""), "--fly-app is required"),
        (DeployTarget(env="staging", fly_app="x"), "--env must be one of"),
        (DeployTarget(env="preview", fly_app="x"), "--preview-name is required"),
    ])
    def test_invalid_target(self, environ, out, target, message):
        with pytest.raises(DeployError, match=message):
            deploy_env(target, runner=FakeRunner(), environ=environ, out=out)

    def test_require_env_treats_empty_as_missing(self):
        with pytest.raises(DeployError):
            require_env({"FLY_API_TOKEN": ""}, ["FLY_API_TOKEN"])


class TestDeployConfig:

    def test_fly_config_ships_with_the_repo(self):
        config = (REPO_ROOT / FLY_CONFIG).read_text()

        assert 'dockerfile = "Dockerfile"' in config
        assert "internal_port = 8080" in config
        assert 'path = "/health"' in config

    def test_dockerfile_runs_the_api(self):
        dockerfile = (REPO_ROOT / "Dockerfile").read_text()

        assert '"app.main:app"' in dockerfile
        assert '"--port", "8080"' in dockerfile


class TestDeployEnv:

    def test_dev_deploy_with_existing_app_and_secrets(self, environ, out):
        runner = FakeRunner({("fly", "secrets", "list"): ok(ALL_SECRETS)})
        check = FakeCheck()

        result = deploy_env(
            DeployTarget(env="dev", fly_app="chatwave-dev"),
            runner=runner,
            environ=environ,
            out=out,
            check=check
        )

        assert not runner.called("fly", "apps", "create")
        assert not runner.called("fly", "secrets", "import")
        assert not runner.called("fly", "secrets", "set")
        assert runner.called("fly", "deploy", ".", "--config", "fly.toml", "-a", "chatwave-dev")
        assert runner.called("fly", "ssh", "console", "-a", "chatwave-dev", "-C", "python -m app.seed")
        assert check.urls == ["https://chatwave-dev.fly.dev/health"]
        assert result.lines() == [
            "ENV=dev",
            "FLY_APP=chatwave-dev",
            "FLY_URL=https://chatwave-dev.fly.dev",
            "BACKEND_URL=https://chatwave-dev.fly.dev/api/chat",
        ]

    def test_steps_run_in_order(self, environ, out):
        runner = FakeRunner({("fly", "secrets", "list"): ok(ALL_SECRETS)})

        deploy_env(
            DeployTarget(env="prod", fly_app="chatwave"),
            runner=runner,
            environ=environ,
            out=out,
            check=FakeCheck()
        )

        assert [call[:2] for call in runner.calls] == [
            ["fly", "auth"],
            ["fly", "status"],
            ["fly", "secrets"],
            ["fly", "deploy"],
            ["fly", "ssh"],
        ]

    def test_creates_missing_app(self, environ, out):
        runner = FakeRunner({
            ("fly", "status"): failed("Could not find App"),
            ("fly", "secrets", "list"): ok(ALL_SECRETS),
        })

        deploy_env(
            DeployTarget(env="dev", fly_app="chatwave-dev", fly_org="my-org"),
            runner=runner,
            environ=environ,
            out=out,
            check=FakeCheck()
        )

        assert runner.called("fly", "apps", "create", "chatwave-dev", "-o", "my-org", "--yes")

    def test_seeds_missing_secrets_over_stdin(self, environ, out):
        runner = FakeRunner({("fly", "secrets", "list"): ok(json.dumps([{"name": "JWT_SECRET_KEY"}]))})

        deploy_env(
            DeployTarget(env="dev", fly_app="chatwave-dev"),
            runner=runner,
            environ=environ,
            out=out,
            check=FakeCheck()
        )

        import_call = ("fly", "secrets", "import", "-a", "chatwave-dev", "--stage")
        assert runner.inputs[import_call] == "MONGODB_URL=mongodb://db.example:27017\n"
        assert all("mongodb://" not in arg for call in runner.calls for arg in call)

    def test_missing_secret_without_local_value(self, environ, out):
        runner = FakeRunner({("fly", "secrets", "list"): ok("[]")})
        del environ["CHATWAVE_MONGODB_URL"]

        with pytest.raises(DeployError) as exc_info:
            deploy_env(DeployTarget(env="dev", fly_app="chatwave-dev"), runner=runner, environ=environ, out=out)

        assert "JWT_SECRET_KEY/MONGODB_URL" in str(exc_info.value)
        assert "CHATWAVE_MONGODB_URL" in str(exc_info.value)
        assert not runner.called("fly", "deploy")

    def test_preview_uses_its_own_database(self, environ, out):
        runner = FakeRunner({("fly", "secrets", "list"): ok(ALL_SECRETS)})

        result = deploy_env(
            DeployTarget(env="preview", fly_app="chatwave-pr-abc", preview_name="preview-abc"),
            runner=runner,
            environ=environ,
            out=out,
            check=FakeCheck()
        )

        assert runner.called(
            "fly", "secrets", "set", "DATABASE_NAME=chatwave_preview-abc", "-a", "chatwave-pr-abc", "--stage"
        )
        assert result.lines()[-1] == "PREVIEW_NAME=preview-abc"

    def test_failed_deploy_stops_before_seed(self, environ, out):
        runner = FakeRunner({
            ("fly", "secrets", "list"): ok(ALL_SECRETS),
            ("fly", "deploy"): failed("build error"),
        })
        check = FakeCheck()

        with pytest.raises(DeployError) as exc_info:
            deploy_env(
                DeployTarget(env="dev", fly_app="chatwave-dev"),
                runner=runner,
                environ=environ,
                out=out,
                check=check
            )

        assert exc_info.value.output == "build error"
        assert not runner.called("fly", "ssh")
        assert check.urls == []

    def test_unparseable_secret_list(self):
        runner = FakeRunner({("fly", "secrets", "list"): ok("not json")})

        with pytest.raises(DeployError, match="Unexpected"):
            list_secret_names(runner, "chatwave-dev")


class TestPreviewBranchSync:

    def test_detached_head_rejected(self, out):
        runner = FakeRunner({("git", "rev-parse", "--abbrev-ref", "HEAD"): ok("HEAD\n")})

        with pytest.raises(DeployError, match="Detached HEAD"):
            sync_branch(runner, out)

    def test_behind_upstream_rejected(self, out):
        runner = FakeRunner({
            ("git", "rev-parse", "--abbrev-ref", "HEAD"): ok("feature\n"),
            ("git", "rev-list"): ok("2\t0\n"),
        })

        with pytest.raises(DeployError, match="behind upstream by 2 commit"):
            sync_branch(runner, out)

        assert not runner.called("git", "push")

    def test_ahead_of_upstream_pushes(self, out):
        runner = FakeRunner({
            ("git", "rev-parse", "--abbrev-ref", "HEAD"): ok("feature\n"),
            ("git", "rev-list"): ok("0\t3\n"),
        })

        assert sync_branch(runner, out) == "feature"
        assert ["git", "push", "origin", "feature"] in runner.calls

    def test_in_sync_does_not_push(self, out):
        runner = FakeRunner({
            ("git", "rev-parse", "--abbrev-ref", "HEAD"): ok("feature\n"),
            ("git", "rev-list"): ok("0\t0\n"),
        })

        sync_branch(runner, out)

        assert not runner.called("git", "push")

    def test_no_upstream_sets_it(self, out):
        runner = FakeRunner({
            ("git", "rev-parse", "--abbrev-ref", "HEAD"): ok("feature\n"),
            ("git", "rev-parse", "--abbrev-ref", "@{upstream}"): failed("no upstream"),
        })

        sync_branch(runner, out)

        assert ["git", "push", "-u", "origin", "feature"] in runner.calls


class TestPreviewDeploy:

    def test_names_and_payload(self, environ, out):
        runner = FakeRunner({
            ("git", "rev-parse", "--abbrev-ref", "HEAD"): ok("feature\n"),
            ("git", "rev-list"): ok("0\t0\n"),
            ("git", "rev-parse", "--short=8", "HEAD"): ok("1a2b3c4d\n"),
        })
        targets = []

        def fake_deploy(target, runner=None, environ=None, out=None):
            targets.append(target)
            return DeployResult(
                env="preview",
                fly_app=target.fly_app,
                fly_url=f"https://{target.fly_app}.fly.dev",
                backend_url=f"https://{target.fly_app}.fly.dev/api/chat",
                preview_name=target.preview_name,
            )

        payload = deploy_preview(runner=runner, environ=environ, out=out, suffix=lambda: "beef", deploy=fake_deploy)

        assert targets[0].env == "preview"
        assert targets[0].fly_app == "chatwave-pr-1a2b3c4d-beef"
        assert targets[0].preview_name == "preview-1a2b3c4d-beef"
        assert payload["baseUrl"] == "https://chatwave-pr-1a2b3c4d-beef.fly.dev"
        assert payload["env"]["PREVIEW_NAME"] == "preview-1a2b3c4d-beef"
        assert payload["destroy"]["argv"] == [
            "chatwave-destroy-preview",
            "--app", "chatwave-pr-1a2b3c4d-beef",
            "--preview-name", "preview-1a2b3c4d-beef",
        ]

    def test_render_formats(self):
        names = preview_names("1a2b3c4d", "beef")
        result = DeployResult(
            env="preview",
            fly_app=names.fly_app,
            fly_url="https://chatwave-pr-1a2b3c4d-beef.fly.dev",
            backend_url="https://chatwave-pr-1a2b3c4d-beef.fly.dev/api/chat",
            preview_name=names.preview_name,
        )
        payload = build_payload(result, names)

        assert json.loads(render_payload(payload, "json")) == payload

        dotenv = render_payload(payload, "dotenv").splitlines()
        assert "ENV=preview" in dotenv
        assert "BASE_URL=https://chatwave-pr-1a2b3c4d-beef.fly.dev" in dotenv
        assert dotenv[-1] == (
            "DESTROY_COMMAND='chatwave-destroy-preview "
            "--app chatwave-pr-1a2b3c4d-beef --preview-name preview-1a2b3c4d-beef'"
        )

        human = render_payload(payload, "human")
        assert "Preview deployment is live." in human
        assert payload["destroy"]["command"] in human


class TestDestroyPreview:

    def test_destroys_app_and_reports_database(self, out):
        runner = FakeRunner()

        destroy_preview("chatwave-pr-1a2b3c4d-beef", "preview-1a2b3c4d-beef", runner=runner, out=out)

        assert runner.calls == [["fly", "apps", "destroy", "chatwave-pr-1a2b3c4d-beef", "--yes"]]
        assert preview_database_name("preview-1a2b3c4d-beef") in out.getvalue()
        assert "not dropped" in out.getvalue()

    def test_destroy_failure(self, out):
        runner = FakeRunner({("fly", "apps", "destroy"): failed("not found")})

        with pytest.raises(DeployError, match="Unable to destroy"):
            destroy_preview("gone", runner=runner, out=out)


class TestCli:

    def test_preview_env_requires_preview_name(self, capsys):
        code = deploy_env_main(["--env", "preview", "--fly-app", "chatwave-pr-x"])

        assert code == 1
        assert "Error: --preview-name is required when --env preview" in capsys.readouterr().err

    def test_unknown_env_is_a_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            deploy_env_main(["--env", "staging", "--fly-app", "x"])

        assert exc_info.value.code == 2

    def test_destroy_requires_app(self):
        with pytest.raises(SystemExit) as exc_info:
            destroy_preview_main([])

        assert exc_info.value.code == 2
