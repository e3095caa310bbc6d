"""
生成服务提示词模板模块
定义大纲生成与分批剧本生成使用的提示词
"""
from models import ProductionMode

# 生成结果中累积快照段落的标题，前序记忆模块按此标记提取快照
SUMMARY_MARKER = "【全剧累积剧情快照更新】"

DEFAULT_LAYOUT_PLACEHOLDER = "标准排版"
DEFAULT_STYLE_PLACEHOLDER = "无特定文笔要求"

MODE_GUIDANCE = {
    ProductionMode.MALE: "男频节奏：主角成长与逆袭为主线，冲突直接，打脸与升级爽点密集。",
    ProductionMode.FEMALE: "女频节奏：情感线与人物关系为主线，细腻呈现情绪拉扯，反转与虐甜交替。",
}


def outline_prompt(source_text: str, layout_text: str = "", style_text: str = "") -> str:
    """
    生成阶段规划大纲的提示词

    Args:
        source_text: 原著内容（调用方已按上限截取前缀）
        layout_text: 排版参考，缺省时使用默认排版占位
        style_text: 文笔参考
    """
    return f"""你现在是一名专业的短剧总编剧。请基于【原著小说内容】完成剧本阶段规划。

【核心任务】
把 60-80 集的体量划分为若干【剧情阶段】，每个阶段包含 5-9 集。

【阶段规划要求】
1. 每个阶段设定一个明确的阶段高潮。
2. 每个阶段注明：包含集数、原著对应章节、核心冲突、阶段结尾钩子。
3. 可以为节奏调整剧情顺序，但不得偏离原著核心逻辑。

【输出格式】
---
【阶段规划路线图】
阶段 1（第 1-9 集）：[阶段标题] | 原著对应：第X章-第Y章
- 核心爽点：...
- 阶段终点：...

阶段 2（第 10-15 集）：...
(以此类推，覆盖全篇)
---

【创作要求】
- 阶段高潮必须源自 <ORIGINAL_NOVEL> 中的冲突。
- 排版复刻 <LAYOUT_TEMPLATE>，文风参考 <STYLE_TEMPLATE>。

<ORIGINAL_NOVEL>
{source_text}
</ORIGINAL_NOVEL>

<LAYOUT_TEMPLATE>
{layout_text or DEFAULT_LAYOUT_PLACEHOLDER}
</LAYOUT_TEMPLATE>

<STYLE_TEMPLATE>
{style_text or DEFAULT_STYLE_PLACEHOLDER}
</STYLE_TEMPLATE>

请开始生成阶段规划。
"""


def batch_prompt(
    start_episode: int,
    end_episode: int,
    mode: ProductionMode,
    phase_plan: str,
    source_window: str,
    previous_context: str,
    accumulated_summary: str,
    layout_text: str = "",
    style_text: str = "",
) -> str:
    """
    生成一批剧本（第 start_episode 至 end_episode 集）的提示词

    previous_context 与 accumulated_summary 由调用方准备好，
    没有前序内容时分别传入占位文本。
    """
    return f"""任务：【阶段剧本创作】编写第 {start_episode} - {end_episode} 集全量脚本。

【递增式剧情快照（先阅读并承接）】
{accumulated_summary}

【阶段目标】
{phase_plan}

【创作模式】
{MODE_GUIDANCE[ProductionMode(mode)]}

【核心指令】
1. 无缝接戏：检查 <PREVIOUS_CONTEXT> 的最后一行，第 {start_episode} 集第一场必须直接衔接。
2. 扩容描写：每集包含 2-3 个冲突点，把原著细节视觉化，单集体量支撑 2-3 分钟视频。
3. 具象化：写出主角看到了什么、听到了什么、做了什么，不使用笼统概括。
4. 忠于原著：节奏可以调整，但不得新增原著中没有的关键人物和设定。

【累积快照更新要求】
写完本批次全部剧本后，以 {SUMMARY_MARKER} 为标题输出一段文字：
把第 {start_episode}-{end_episode} 集的核心事件整合进上面的剧情快照，形成截至目前最完整的全剧档案。
该标题之后只写快照内容。

【输入资料】
<ORIGINAL_SOURCE>
{source_window}
</ORIGINAL_SOURCE>

<PREVIOUS_CONTEXT>
{previous_context}
</PREVIOUS_CONTEXT>

<LAYOUT_TEMPLATE>
{layout_text or DEFAULT_LAYOUT_PLACEHOLDER}
</LAYOUT_TEMPLATE>

<STYLE_TEMPLATE>
{style_text or DEFAULT_STYLE_PLACEHOLDER}
</STYLE_TEMPLATE>

请开始编写第 {start_episode} - {end_episode} 集脚本，并更新累积快照。
"""
