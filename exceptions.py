"""
自定义异常类模块
定义剧本工坊中使用的各种异常类型
"""


class ScriptWorkshopError(Exception):
    """基础异常类，所有项目相关的异常都应继承此类"""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class APIKeyError(ScriptWorkshopError):
    """API密钥相关错误"""

    pass


class ConfigurationError(ScriptWorkshopError):
    """配置相关错误"""

    pass


class ProjectNotFoundError(ScriptWorkshopError):
    """作品不存在"""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"作品不存在: {project_id}")


class DocumentNotFoundError(ScriptWorkshopError):
    """参考资料不存在或类别不匹配"""

    def __init__(self, document_id: str, details: str | None = None):
        self.document_id = document_id
        super().__init__(f"参考资料不存在: {document_id}", details)


class FileValidationError(ScriptWorkshopError):
    """文件验证错误"""

    pass


class EncodingError(ScriptWorkshopError):
    """文本编码错误"""

    pass


class PreconditionError(ScriptWorkshopError):
    """生成前置条件不满足（用户可自行修正，不会访问外部服务）"""

    pass


class MissingSelectionError(PreconditionError):
    """缺少必需的参考资料指向"""

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"请先选择{role}指向")


class MissingOutlineError(PreconditionError):
    """尚未生成剧情大纲"""

    def __init__(self, message: str = "请先生成剧情大纲"):
        super().__init__(message)


class GenerationInProgressError(PreconditionError):
    """同一作品已有生成请求在进行中"""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"作品 {project_id} 正在生成中，请等待当前请求完成")


class GenerationRequestError(ScriptWorkshopError):
    """生成服务返回非成功状态或网络传输失败"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(ScriptWorkshopError):
    """生成服务返回成功但缺少 choices[0].message.content"""

    def __init__(self, message: str, payload: object | None = None):
        self.payload = payload
        super().__init__(message)


class PersistenceReadError(ScriptWorkshopError):
    """持久化状态无法解析（在加载边界内部恢复，不向调用方抛出）"""

    pass


class PersistenceWriteError(ScriptWorkshopError):
    """持久化状态写入失败"""

    pass
