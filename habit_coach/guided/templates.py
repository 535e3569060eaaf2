"""Guided conversation templates and helpers for reading their responses."""

from __future__ import annotations

from habit_coach.models.guided import GuidedOption, GuidedStep, GuidedTemplate, IfThenPlan


def _options(*values: str) -> list[GuidedOption]:
    return [GuidedOption(label=value, value=value) for value in values]


IF_THEN_TEMPLATE = GuidedTemplate(
    id="if-then",
    title="If-Thenプランを作る",
    description="開きたくなる場面と、その代わりにする行動を決めます。",
    steps=[
        GuidedStep(
            id="trigger",
            prompt="どんな時にショート動画を開きたくなりますか？",
            options=_options("暇な時", "ストレスを感じた時", "寝る前", "電車の中", "食事中"),
        ),
        GuidedStep(
            id="detail",
            prompt="その時の状況をもう少し詳しく教えてください。",
        ),
        GuidedStep(
            id="alternative",
            prompt="代わりに何をしてみたいですか？",
            options=_options("深呼吸する", "水を飲む", "散歩する", "本を読む", "音楽を聴く"),
        ),
        GuidedStep(
            id="confirm",
            prompt="このプランで始めてみますか？",
            options=[
                GuidedOption(label="これでOK", value="complete"),
                GuidedOption(label="修正したい", value="edit"),
            ],
        ),
    ],
)

TRIGGER_ANALYSIS_TEMPLATE = GuidedTemplate(
    id="trigger-analysis",
    title="きっかけを分析する",
    description="最近開いてしまった場面を振り返り、きっかけを見つけます。",
    steps=[
        GuidedStep(
            id="cue",
            prompt="直前に何がありましたか？",
            options=_options(
                "通知が来た", "暇だった", "ストレスを感じた", "習慣的に", "誰かが見ていた", "なんとなく"
            ),
        ),
        GuidedStep(
            id="emotion",
            prompt="その時、どんな気持ちでしたか？",
            options=_options(
                "疲れていた", "退屈だった", "不安だった", "イライラしていた", "特に何も感じなかった"
            ),
        ),
        GuidedStep(
            id="context",
            prompt="何をしている時でしたか？",
            options=_options(
                "仕事・勉強", "食事", "移動中", "休憩中", "寝る準備", "SNSを見ていた"
            ),
        ),
        GuidedStep(
            id="reflection",
            prompt="振り返ってみて、気づいたことはありますか？",
        ),
    ],
)

URGE_RECORD_TEMPLATE = GuidedTemplate(
    id="urge-record",
    title="衝動を記録する",
    description="開きたくなった気持ちの強さときっかけを記録します。",
    steps=[
        GuidedStep(
            id="intensity",
            prompt="衝動の強さは1〜10でどのくらいですか？",
            options=_options("3", "5", "8", "10"),
        ),
        GuidedStep(
            id="trigger",
            prompt="何がきっかけでしたか？",
            options=_options("通知", "暇", "ストレス", "習慣"),
        ),
        GuidedStep(
            id="feeling",
            prompt="今の気持ちを一言で表すと？",
        ),
    ],
)

SUCCESS_RECORD_TEMPLATE = GuidedTemplate(
    id="success-record",
    title="成功を記録する",
    description="開かずに済んだ時のやり方を記録します。",
    steps=[
        GuidedStep(
            id="method",
            prompt="どうやって衝動を乗り越えましたか？",
            options=_options("深呼吸した", "別のことをした", "スマホを置いた", "誰かと話した"),
        ),
        GuidedStep(
            id="feeling",
            prompt="乗り越えた今、どんな気持ちですか？",
        ),
        GuidedStep(
            id="tip",
            prompt="次の自分へのアドバイスはありますか？",
        ),
    ],
)

GUIDED_TEMPLATES: dict[str, GuidedTemplate] = {
    template.id: template
    for template in (
        IF_THEN_TEMPLATE,
        TRIGGER_ANALYSIS_TEMPLATE,
        URGE_RECORD_TEMPLATE,
        SUCCESS_RECORD_TEMPLATE,
    )
}

# Alternative activities that map onto built-in plan actions
ALTERNATIVE_ACTIONS: dict[str, str] = {
    "深呼吸する": "breathe",
    "水を飲む": "water",
    "散歩する": "short_walk",
    "本を読む": "read_page",
    "ストレッチする": "stretch",
    "外の景色を見る": "look_outside",
}


def get_guided_template(template_id: str) -> GuidedTemplate | None:
    return GUIDED_TEMPLATES.get(template_id)


def get_current_step(template_id: str, step_index: int) -> GuidedStep | None:
    template = get_guided_template(template_id)
    if template is None or not 0 <= step_index < len(template.steps):
        return None
    return template.steps[step_index]


def is_last_step(template_id: str, step_index: int) -> bool:
    template = get_guided_template(template_id)
    if template is None:
        return True
    return step_index >= len(template.steps) - 1


def build_if_then_text(responses: dict[str, str]) -> str:
    """Plain-language plan, e.g. ``もし寝る前になったら、本を読むをする``."""
    trigger = responses.get("trigger", "")
    alternative = responses.get("alternative", "")
    if not trigger or not alternative:
        return ""
    return f"もし{trigger}になったら、{alternative}をする"


def map_alternative_to_if_then_plan(
    alternative: str, trigger: str | None = None
) -> IfThenPlan | None:
    """Known alternatives become built-in actions, anything else ``custom``."""
    if not alternative:
        return None
    action = ALTERNATIVE_ACTIONS.get(alternative)
    if action is not None:
        return IfThenPlan(action=action, trigger=trigger)
    return IfThenPlan(action="custom", trigger=trigger, custom_action=alternative)


def build_trigger_summary(responses: dict[str, str]) -> dict[str, str]:
    return {
        "situation": responses.get("cue", ""),
        "emotion": responses.get("emotion", ""),
        "context": responses.get("context", ""),
        "reflection": responses.get("reflection", ""),
    }
