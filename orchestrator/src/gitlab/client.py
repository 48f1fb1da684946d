"""
GitLab client for the provisioning and pipeline calls the scheduler makes.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from orchestrator.src.config import Settings
from orchestrator.src.errors import NotFoundError, ProviderError
from orchestrator.src.models.job import ProviderJob

logger = logging.getLogger(__name__)

PRODUCTS_VARIABLE = "PRODUCTS"
JOBS_PER_PAGE = 100

class CIProvider(Protocol):
    """Capabilities the scheduler needs from the CI provider."""

    async def branch_exists(self, name: str) -> bool: ...

    async def clone_branch(self, name: str, ref: str) -> None: ...

    async def environment_exists(self, name: str) -> bool: ...

    async def create_environment(self, name: str) -> None: ...

    async def variables_exist(self, name: str) -> bool: ...

    async def create_variables(self, name: str, products: List[str]) -> None: ...

    async def update_variables(self, name: str, products: List[str]) -> None: ...

    async def run_pipeline(self, branch: str) -> int: ...

    async def get_jobs_for_pipeline(self, pipeline_id: int) -> List[ProviderJob]: ...

    async def run_job(self, job_id: int) -> None: ...

    async def get_job_status(self, job_id: int) -> str: ...

class GitLabClient:
    """CIProvider backed by the GitLab REST API of a single project."""

    def __init__(
        self,
        base_url: str,
        project_id: int,
        token: str,
        trigger_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.project_id = project_id
        self.trigger_token = trigger_token
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"PRIVATE-TOKEN": token},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitLabClient":
        return cls(
            base_url=settings.gitlab_api_url,
            project_id=settings.gitlab_project_id,
            token=settings.gitlab_token,
            trigger_token=settings.gitlab_trigger_token,
            timeout=settings.request_timeout,
        )

    async def close(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"/projects/{self.project_id}{path}"
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"GitLab request {method} {url} failed: {e}")
            raise ProviderError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str):
        if response.status_code >= 400:
            logger.error(
                f"GitLab answered {response.status_code} while trying to {action}: {response.text}"
            )
            raise ProviderError(
                f"failed to {action}: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"invalid JSON while trying to {action}: {e}") from e

    async def branch_exists(self, name: str) -> bool:
        response = await self._request("GET", f"/repository/branches/{name}")
        if response.status_code == 404:
            logger.info(f"Branch {name} not found")
            return False
        self._raise_for_status(response, f"check branch {name}")
        logger.info(f"Branch {name} exists")
        return True

    async def clone_branch(self, name: str, ref: str) -> None:
        response = await self._request(
            "POST", "/repository/branches", params={"branch": name, "ref": ref}
        )
        self._raise_for_status(response, f"create branch {name} from {ref}")
        logger.info(f"Branch {name} created from {ref}")

    async def environment_exists(self, name: str) -> bool:
        response = await self._request("GET", "/environments", params={"search": name})
        self._raise_for_status(response, f"check environment {name}")
        environments = self._json(response, f"check environment {name}")
        # search is a substring match
        return any(env.get("name") == name for env in environments or [])

    async def create_environment(self, name: str) -> None:
        response = await self._request("POST", "/environments", data={"name": name})
        self._raise_for_status(response, f"create environment {name}")
        logger.info(f"Environment {name} created")

    async def variables_exist(self, name: str) -> bool:
        response = await self._request(
            "GET",
            f"/variables/{PRODUCTS_VARIABLE}",
            params={"filter[environment_scope]": name},
        )
        if response.status_code == 404:
            return False
        self._raise_for_status(response, f"check variables of {name}")
        return True

    async def create_variables(self, name: str, products: List[str]) -> None:
        response = await self._request(
            "POST",
            "/variables",
            data={
                "key": PRODUCTS_VARIABLE,
                "value": ",".join(products),
                "environment_scope": name,
            },
        )
        self._raise_for_status(response, f"create variables of {name}")
        logger.info(f"Variables created for environment {name}")

    async def update_variables(self, name: str, products: List[str]) -> None:
        response = await self._request(
            "PUT",
            f"/variables/{PRODUCTS_VARIABLE}",
            params={"filter[environment_scope]": name},
            data={"value": ",".join(products)},
        )
        self._raise_for_status(response, f"update variables of {name}")
        logger.info(f"Variables updated for environment {name}")

    async def run_pipeline(self, branch: str) -> int:
        response = await self._request(
            "POST",
            "/trigger/pipeline",
            params={"ref": branch, "token": self.trigger_token},
        )
        self._raise_for_status(response, f"run pipeline for {branch}")
        body: Dict[str, Any] = self._json(response, f"run pipeline for {branch}")
        if "id" not in body:
            raise NotFoundError(f"pipeline id missing in trigger response for {branch}")
        logger.info(f"Pipeline {body['id']} started for branch {branch}")
        return int(body["id"])

    async def get_jobs_for_pipeline(self, pipeline_id: int) -> List[ProviderJob]:
        jobs: List[ProviderJob] = []
        page = "1"
        # GitLab leaves X-Next-Page empty on the last page
        while page:
            response = await self._request(
                "GET",
                f"/pipelines/{pipeline_id}/jobs",
                params={"per_page": JOBS_PER_PAGE, "page": page},
            )
            self._raise_for_status(response, f"list jobs of pipeline {pipeline_id}")
            jobs.extend(
                ProviderJob.model_validate(job)
                for job in self._json(response, f"list jobs of pipeline {pipeline_id}")
            )
            page = response.headers.get("X-Next-Page", "").strip()
        return jobs

    async def run_job(self, job_id: int) -> None:
        response = await self._request("POST", f"/jobs/{job_id}/play")
        self._raise_for_status(response, f"play job {job_id}")
        logger.info(f"Job {job_id} started")

    async def get_job_status(self, job_id: int) -> str:
        response = await self._request("GET", f"/jobs/{job_id}")
        self._raise_for_status(response, f"get status of job {job_id}")
        body = self._json(response, f"get status of job {job_id}")
        if "status" not in body:
            raise NotFoundError(f"status missing in response for job {job_id}")
        return body["status"]
