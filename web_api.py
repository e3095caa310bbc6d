"""
FastAPI 后端接口：
- /state                      GET 应用状态（当前作品、当前界面）
- /projects                   GET/POST 作品列表与新建
- /projects/{id}              GET/PATCH/DELETE 作品详情、浅合并更新、删除（需 confirm=true）
- /projects/{id}/documents    POST 上传参考资料（可多个文件）；DELETE /documents/{doc_id} 删除
- /projects/{id}/selections/{role}  PUT 设置参考资料指向
- /projects/{id}/outline      POST 生成大纲
- /projects/{id}/batches      GET 批次列表；POST 生成下一批或指定批次
- /projects/{id}/export/...   POST 导出大纲或批次

启动方式：
  uvicorn web_api:app --reload --port 8000
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import get_generation_config
from exceptions import (
    DocumentNotFoundError,
    EncodingError,
    FileValidationError,
    GenerationInProgressError,
    GenerationRequestError,
    MalformedResponseError,
    MissingOutlineError,
    PreconditionError,
    ProjectNotFoundError,
    ScriptWorkshopError,
)
from models import CLEAR, SELECTION_FIELDS, DocumentRole, ProductionMode, Project, ProjectUpdate, Screen
from services.file_service import FileService
from services.generation_service import GenerationService
from services.llm_service import HttpGenerationClient, create_generation_client
from services.project_store import ProjectStore
from utils import setup_logging
from validators import validate_extension

ROLE_NAMES = {
    "primary_source": DocumentRole.PRIMARY_SOURCE,
    "layout_template": DocumentRole.LAYOUT_TEMPLATE,
    "style_template": DocumentRole.STYLE_TEMPLATE,
}

_store: Optional[ProjectStore] = None
_generation_service: Optional[GenerationService] = None
_file_service: Optional[FileService] = None


def get_store() -> ProjectStore:
    global _store
    if _store is None:
        _store = ProjectStore.from_config()
    return _store


def get_generation_service() -> GenerationService:
    global _generation_service
    if _generation_service is None:
        _generation_service = GenerationService(get_store(), create_generation_client())
    return _generation_service


def get_file_service() -> FileService:
    global _file_service
    if _file_service is None:
        _file_service = FileService()
    return _file_service


def parse_role(role: str) -> DocumentRole:
    if role in ROLE_NAMES:
        return ROLE_NAMES[role]
    try:
        return DocumentRole(role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"未知的资料类别: {role}")


class CreateProjectRequest(BaseModel):
    name: str


class ProjectPatch(BaseModel):
    name: Optional[str] = None
    mode: Optional[ProductionMode] = None


class SelectionRequest(BaseModel):
    document_id: Optional[str] = None


class BatchGenerationRequest(BaseModel):
    sequence_index: Optional[int] = None


class NavigateRequest(BaseModel):
    screen: Screen


def project_payload(project: Project, detail: bool = False) -> Dict[str, Any]:
    """作品的接口表示；列表中不返回资料全文和剧本正文"""
    store = get_store()
    episodes_per_batch = get_generation_config().episodes_per_batch
    payload: Dict[str, Any] = {
        "id": project.id,
        "name": project.name,
        "createdAt": project.to_dict()["createdAt"],
        "mode": project.production_mode.value,
        "currentBatch": project.highest_completed_index,
        "nextBatch": project.next_sequence_index,
        "hasOutline": bool(project.outline),
        "generating": store.is_generating(project.id),
        "files": [
            {
                "id": doc.id,
                "name": doc.name,
                "category": doc.role.value,
                "type": doc.media_type,
                "length": doc.length,
            }
            for doc in project.reference_documents
        ],
        "selectedOriginalId": project.selected_primary_source_id,
        "selectedLayoutId": project.selected_layout_template_id,
        "selectedStyleId": project.selected_style_template_id,
    }
    if detail:
        payload["outline"] = project.outline
        payload["scripts"] = [
            {
                **batch.to_dict(),
                "startEpisode": (batch.sequence_index - 1) * episodes_per_batch + 1,
                "endEpisode": batch.sequence_index * episodes_per_batch,
            }
            for batch in project.completed_batches()
        ]
    return payload


def state_payload() -> Dict[str, Any]:
    state = get_store().state
    return {
        "currentProjectId": state.active_project_id,
        "currentView": state.current_screen.value,
        "projectCount": len(state.projects),
    }


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    yield
    await HttpGenerationClient.close_http_clients()


app = FastAPI(title="Script Workshop API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(error: ScriptWorkshopError) -> int:
    if isinstance(error, (ProjectNotFoundError, DocumentNotFoundError)):
        return 404
    if isinstance(error, GenerationInProgressError):
        return 409
    if isinstance(error, (PreconditionError, FileValidationError, EncodingError)):
        return 400
    if isinstance(error, (GenerationRequestError, MalformedResponseError)):
        return 502
    # ConfigurationError, APIKeyError 等服务端问题
    return 500


@app.exception_handler(ScriptWorkshopError)
async def handle_workshop_error(_request: Request, error: ScriptWorkshopError):
    body = {"detail": error.message, "error": type(error).__name__}
    if error.details:
        body["details"] = error.details
    return JSONResponse(status_code=_status_for(error), content=body)


@app.exception_handler(ValueError)
async def handle_value_error(_request: Request, error: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(error), "error": "ValueError"})


# ---- 应用状态 ----

@app.get("/state")
def get_state():
    return state_payload()


@app.post("/navigate")
async def navigate(body: NavigateRequest):
    get_store().navigate(body.screen)
    return state_payload()


@app.post("/back")
async def go_back():
    get_store().go_back()
    return state_payload()


# ---- 作品 ----

@app.get("/projects")
def list_projects() -> List[Dict[str, Any]]:
    return [project_payload(p) for p in get_store().list_projects()]


@app.post("/projects", status_code=201)
async def create_project(body: CreateProjectRequest):
    project = get_store().create_project(body.name)
    return project_payload(project, detail=True)


@app.get("/projects/{project_id}")
def get_project(project_id: str):
    return project_payload(get_store().get_project(project_id), detail=True)


@app.post("/projects/{project_id}/select")
async def select_project(project_id: str):
    project = get_store().select_project(project_id)
    return project_payload(project, detail=True)


@app.patch("/projects/{project_id}")
async def patch_project(project_id: str, body: ProjectPatch):
    name = body.name.strip() if body.name is not None else None
    if name is not None and not name:
        raise HTTPException(status_code=400, detail="作品名称不能为空")
    update = ProjectUpdate(name=name, production_mode=body.mode)
    project = get_store().update_project(project_id, update)
    return project_payload(project, detail=True)


@app.delete("/projects/{project_id}")
async def delete_project(project_id: str, confirm: bool = False):
    if not confirm:
        raise HTTPException(status_code=400, detail="删除作品不可撤销，请携带 confirm=true 确认")
    get_store().delete_project(project_id)
    return {"ok": True, **state_payload()}


# ---- 参考资料 ----

@app.post("/projects/{project_id}/documents", status_code=201)
async def upload_document(project_id: str, role: str = Form(...), files: List[UploadFile] = File(...)):
    """一次上传多个文件；任一文件无效时整批不写入"""
    document_role = parse_role(role)
    for file in files:
        validate_extension(file.filename or "")
        if file.content_type not in ("text/plain", "text/markdown", "application/octet-stream"):
            raise HTTPException(status_code=400, detail=f"仅支持文本文件: {file.filename}")

    get_store().get_project(project_id)
    file_service = get_file_service()
    decoded = [
        (file, file_service.decode_upload(file.filename, await file.read()))
        for file in files
    ]

    documents = [
        get_store().add_reference_document(
            project_id,
            file.filename,
            document_role,
            text,
            file.content_type or file_service.guess_media_type(file.filename),
        )
        for file, text in decoded
    ]
    return [
        {
            "id": document.id,
            "name": document.name,
            "category": document.role.value,
            "type": document.media_type,
            "length": document.length,
        }
        for document in documents
    ]


@app.delete("/projects/{project_id}/documents/{document_id}")
async def delete_document(project_id: str, document_id: str):
    project = get_store().remove_reference_document(project_id, document_id)
    return project_payload(project)


@app.put("/projects/{project_id}/selections/{role}")
async def select_reference(project_id: str, role: str, body: SelectionRequest):
    project = get_store().select_reference(project_id, parse_role(role), body.document_id)
    return project_payload(project)


@app.delete("/projects/{project_id}/selections/{role}")
async def clear_reference(project_id: str, role: str):
    field_name = SELECTION_FIELDS[parse_role(role)]
    project = get_store().update_project(project_id, ProjectUpdate(**{field_name: CLEAR}))
    return project_payload(project)


# ---- 生成 ----

@app.post("/projects/{project_id}/outline")
async def generate_outline(project_id: str):
    project = await get_generation_service().request_outline_generation(project_id)
    return project_payload(project, detail=True)


@app.get("/projects/{project_id}/batches")
def list_batches(project_id: str):
    project = get_store().get_project(project_id)
    return project_payload(project, detail=True)["scripts"]


@app.post("/projects/{project_id}/batches")
async def generate_batch(project_id: str, body: Optional[BatchGenerationRequest] = None):
    sequence_index = body.sequence_index if body else None
    service = get_generation_service()
    batch = await service.request_batch_generation(project_id, sequence_index)
    episodes = service.episode_range(batch.sequence_index)
    project = get_store().get_project(project_id)
    return {
        **batch.to_dict(),
        "startEpisode": episodes.start,
        "endEpisode": episodes.end,
        "currentBatch": project.highest_completed_index,
        "nextBatch": project.next_sequence_index,
    }


# ---- 导出 ----

@app.post("/projects/{project_id}/export/outline")
def export_outline(project_id: str):
    project = get_store().get_project(project_id)
    if not project.outline:
        raise MissingOutlineError()
    path = get_file_service().export_outline(project)
    return {"file_path": str(path)}


@app.post("/projects/{project_id}/export/batches/{sequence_index}")
def export_batch(project_id: str, sequence_index: int):
    project = get_store().get_project(project_id)
    batch = project.batch_at(sequence_index)
    if batch is None or not batch.is_completed:
        raise HTTPException(status_code=404, detail=f"第{sequence_index}批剧本不存在")
    path = get_file_service().export_batch(project, batch)
    return {"file_path": str(path)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_api:app", host="0.0.0.0", port=8000, reload=True)
