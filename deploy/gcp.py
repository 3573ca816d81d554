# deploy/gcp.py
"""
Deploy the pinger to Google Cloud as a Cloud Run Job triggered hourly by
Cloud Scheduler.

Steps: prerequisites, project, APIs, Artifact Registry, image build/push,
Cloud Run Job, Cloud Scheduler, summary. Every setting can be overridden by
environment variable; run with --dry-run to only log the gcloud/docker
commands.
"""
from __future__ import annotations

import argparse
import logging
import os
import shutil
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from core.config import DEFAULT_ENDPOINT, DEFAULT_SCHEDULE

log = logging.getLogger("pinger.deploy")

REQUIRED_APIS = (
    "artifactregistry.googleapis.com",
    "run.googleapis.com",
    "cloudscheduler.googleapis.com",
    "cloudbuild.googleapis.com",
)

Runner = Callable[[Sequence[str], bool], subprocess.CompletedProcess]


class DeployError(Exception):
    pass


@dataclass(frozen=True)
class DeploySettings:
    project_id: str = ""
    region: str = "us-central1"
    repository: str = "cron-jobs"
    image_name: str = "cron-uninterrupt-task"
    job_name: str = "cron-uninterrupt-task"
    scheduler_name: str = "cron-uninterrupt-task-hourly"
    api_endpoint: str = DEFAULT_ENDPOINT
    service_account: str = ""
    memory: str = "512Mi"
    cpu: str = "1"
    task_timeout: str = "300s"
    max_retries: str = "3"
    schedule: str = DEFAULT_SCHEDULE
    timezone: str = "America/Los_Angeles"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DeploySettings":
        env = os.environ if env is None else env
        defaults = cls()

        def pick(name: str, default: str) -> str:
            return env.get(name, "").strip() or default

        return cls(
            project_id=pick("GCP_PROJECT_ID", defaults.project_id),
            region=pick("GCP_REGION", defaults.region),
            repository=pick("ARTIFACT_REGISTRY_REPO", defaults.repository),
            image_name=pick("IMAGE_NAME", defaults.image_name),
            job_name=pick("CLOUD_RUN_JOB_NAME", defaults.job_name),
            scheduler_name=pick("SCHEDULER_NAME", defaults.scheduler_name),
            api_endpoint=pick("API_ENDPOINT", defaults.api_endpoint),
            service_account=pick("SERVICE_ACCOUNT", defaults.service_account),
            memory=pick("MEMORY", defaults.memory),
            cpu=pick("CPU", defaults.cpu),
            task_timeout=pick("TIMEOUT", defaults.task_timeout),
            max_retries=pick("MAX_RETRIES", defaults.max_retries),
            schedule=pick("SCHEDULE", defaults.schedule),
            timezone=pick("TIMEZONE", defaults.timezone),
        )

    @property
    def registry_host(self) -> str:
        return f"{self.region}-docker.pkg.dev"

    def image_ref(self, tag: str) -> str:
        return f"{self.registry_host}/{self.project_id}/{self.repository}/{self.image_name}:{tag}"

    @property
    def job_uri(self) -> str:
        return (
            f"https://{self.region}-run.googleapis.com/apis/run.googleapis.com/v1/"
            f"namespaces/{self.project_id}/jobs/{self.job_name}:run"
        )

    @property
    def scheduler_account(self) -> str:
        return self.service_account or f"{self.project_id}@appspot.gserviceaccount.com"


def _subprocess_runner(argv: Sequence[str], capture: bool) -> subprocess.CompletedProcess:
    return subprocess.run(list(argv), capture_output=capture, text=True, check=False)


class Deployer:
    def __init__(
        self,
        settings: DeploySettings,
        *,
        runner: Runner = _subprocess_runner,
        dry_run: bool = False,
        with_resources: bool = False,
        which: Callable[[str], Optional[str]] = shutil.which,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.dry_run = dry_run
        self.with_resources = with_resources
        self.which = which
        self.clock = clock
        self.sleep = sleep
        self.commands: List[List[str]] = []

    # ---- command plumbing ----

    def _run(self, argv: List[str], *, capture: bool = False) -> subprocess.CompletedProcess:
        self.commands.append(argv)
        if self.dry_run:
            log.info("[dry-run] %s", " ".join(argv))
            return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")
        log.debug("$ %s", " ".join(argv))
        return self.runner(argv, capture)

    def _must(self, argv: List[str], what: str) -> None:
        proc = self._run(argv)
        if proc.returncode != 0:
            raise DeployError(f"{what} failed (exit {proc.returncode})")

    def _probe(self, argv: List[str]) -> bool:
        """Existence check; in dry-run everything is assumed missing."""
        if self.dry_run:
            self.commands.append(argv)
            log.info("[dry-run] probe: %s", " ".join(argv))
            return False
        return self._run(argv, capture=True).returncode == 0

    # ---- steps ----

    def check_prerequisites(self) -> None:
        for tool, url in (
            ("gcloud", "https://cloud.google.com/sdk/docs/install"),
            ("docker", "https://docs.docker.com/get-docker/"),
        ):
            if not self.which(tool):
                raise DeployError(f"{tool} is not installed. Install it from: {url}")
            log.info("%s is installed", tool)

        if not self.dry_run:
            proc = self._run(
                ["gcloud", "auth", "list", "--filter=status:ACTIVE", "--format=value(account)"],
                capture=True,
            )
            if proc.returncode != 0 or not (proc.stdout or "").strip():
                raise DeployError("Not authenticated with gcloud. Run: gcloud auth login")
            log.info("authenticated with gcloud")

    def resolve_project(self) -> str:
        if self.settings.project_id:
            log.info("using specified project: %s", self.settings.project_id)
            return self.settings.project_id

        if self.dry_run:
            raise DeployError("GCP_PROJECT_ID is required for --dry-run")

        proc = self._run(["gcloud", "config", "get-value", "project"], capture=True)
        project = (proc.stdout or "").strip()
        if proc.returncode != 0 or not project:
            raise DeployError("No GCP project set. Run: gcloud config set project YOUR_PROJECT_ID")
        self.settings = DeploySettings(**{**asdict(self.settings), "project_id": project})
        log.info("using project: %s", project)
        return project

    def enable_apis(self) -> None:
        for api in REQUIRED_APIS:
            log.info("enabling %s", api)
            # Already-enabled APIs or missing permissions should not stop the deploy
            proc = self._run(["gcloud", "services", "enable", api, f"--project={self.settings.project_id}"], capture=True)
            if proc.returncode != 0:
                log.warning("could not enable %s: %s", api, (proc.stderr or "").strip())
        if not self.dry_run:
            self.sleep(2)  # propagation

    def setup_artifact_registry(self) -> None:
        s = self.settings
        where = [f"--location={s.region}", f"--project={s.project_id}"]
        if self._probe(["gcloud", "artifacts", "repositories", "describe", s.repository, *where]):
            log.info("Artifact Registry repository '%s' already exists", s.repository)
        else:
            log.info("creating Artifact Registry repository '%s'", s.repository)
            self._must(
                [
                    "gcloud", "artifacts", "repositories", "create", s.repository,
                    "--repository-format=docker",
                    *where,
                    "--description=Docker repository for cron jobs",
                ],
                "creating Artifact Registry repository",
            )
        self._must(["gcloud", "auth", "configure-docker", s.registry_host, "--quiet"], "configuring Docker auth")

    def build_and_push(self) -> str:
        latest = self.settings.image_ref("latest")
        stamped = self.settings.image_ref(self.clock().strftime("%Y%m%d-%H%M%S"))

        log.info("building image for linux/amd64")
        self._must(["docker", "build", "--platform", "linux/amd64", "-t", latest, "-t", stamped, "."], "docker build")
        for ref in (latest, stamped):
            log.info("pushing %s", ref)
            self._must(["docker", "push", ref], f"pushing {ref}")
        return latest

    def deploy_job(self, image: str) -> None:
        s = self.settings
        argv = [
            "gcloud", "run", "jobs", "deploy", s.job_name,
            f"--image={image}",
            f"--region={s.region}",
            f"--project={s.project_id}",
            f"--set-env-vars=API_ENDPOINT={s.api_endpoint}",
        ]
        if s.service_account:
            argv.append(f"--service-account={s.service_account}")
        if self.with_resources:
            argv += [
                f"--memory={s.memory}",
                f"--cpu={s.cpu}",
                f"--max-retries={s.max_retries}",
                f"--task-timeout={s.task_timeout}",
            ]
        log.info("deploying Cloud Run Job '%s' in %s", s.job_name, s.region)
        self._must(argv, "deploying Cloud Run Job")

    def setup_scheduler(self) -> None:
        s = self.settings
        project = f"--project={s.project_id}"

        # Cloud Scheduler needs an App Engine app in some regions
        if not self._probe(["gcloud", "app", "describe", project]):
            log.warning("App Engine app not found, creating one in %s", s.region)
            self._run(["gcloud", "app", "create", f"--region={s.region}", project], capture=True)

        common = [
            f"--location={s.region}",
            project,
            f"--schedule={s.schedule}",
            f"--uri={s.job_uri}",
            "--http-method=POST",
            f"--oauth-service-account-email={s.scheduler_account}",
            f"--time-zone={s.timezone}",
        ]
        if self._probe(["gcloud", "scheduler", "jobs", "describe", s.scheduler_name, f"--location={s.region}", project]):
            log.info("updating Cloud Scheduler job '%s'", s.scheduler_name)
            self._must(["gcloud", "scheduler", "jobs", "update", "http", s.scheduler_name, *common], "updating scheduler job")
        else:
            log.info("creating Cloud Scheduler job '%s'", s.scheduler_name)
            self._must(
                [
                    "gcloud", "scheduler", "jobs", "create", "http", s.scheduler_name, *common,
                    f"--description=Hourly trigger for {s.job_name}",
                ],
                "creating scheduler job",
            )

    def summary(self) -> List[str]:
        s = self.settings
        return [
            f"Project:           {s.project_id}",
            f"Region:            {s.region}",
            f"Artifact Registry: {s.repository}",
            f"Image:             {s.image_name}",
            f"Cloud Run Job:     {s.job_name}",
            f"Scheduler:         {s.scheduler_name}",
            f"Schedule:          {s.schedule} ({s.timezone})",
            f"API Endpoint:      {s.api_endpoint}",
            "",
            f"Execute job now:   gcloud run jobs execute {s.job_name} --region={s.region}",
            f"View job logs:     gcloud logging read \"resource.type=cloud_run_job AND resource.labels.job_name={s.job_name}\" --limit=50",
            f"Trigger scheduler: gcloud scheduler jobs run {s.scheduler_name} --location={s.region}",
        ]

    def deploy(self) -> str:
        self.check_prerequisites()
        self.resolve_project()
        self.enable_apis()
        self.setup_artifact_registry()
        image = self.build_and_push()
        self.deploy_job(image)
        self.setup_scheduler()
        for line in self.summary():
            log.info("%s", line)
        return image


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m deploy.gcp",
        description="Deploy the pinger as a Cloud Run Job with an hourly Cloud Scheduler trigger.",
    )
    parser.add_argument("--dry-run", action="store_true", help="log commands without running them")
    parser.add_argument("--with-resources", action="store_true", help="also set memory/cpu/retries/timeout on the job")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    deployer = Deployer(DeploySettings.from_env(), dry_run=args.dry_run, with_resources=args.with_resources)
    try:
        deployer.deploy()
    except DeployError as e:
        log.error("%s", e)
        return 1
    log.info("deployment completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
