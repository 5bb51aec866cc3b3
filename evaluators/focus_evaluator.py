"""实时专注度判断模块"""


class FocusEvaluator:
    """根据三个去抖器当前是否处于 Active 状态给出瞬时专注度（0-100）。"""

    def __init__(self, blink_penalty: int = 5, yawn_penalty: int = 15, look_away_penalty: int = 20):
        self.blink_penalty = blink_penalty
        self.yawn_penalty = yawn_penalty
        self.look_away_penalty = look_away_penalty

    def evaluate(self, is_blinking: bool, is_yawning: bool, is_looking_away: bool) -> int:
        """
        计算瞬时专注度。

        从 100 开始，眨眼、哈欠、视线偏离分别扣分，结果限制在 [0, 100]。
        """
        level = 100
        if is_blinking:
            level -= self.blink_penalty
        if is_yawning:
            level -= self.yawn_penalty
        if is_looking_away:
            level -= self.look_away_penalty
        return max(0, min(100, level))
