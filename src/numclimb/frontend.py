from __future__ import annotations

import math

import pyray as rl

from .calc import CalcPhase
from .level.layout import GROUND_Y, PLAY_HEIGHT, PLAY_WIDTH, PLAYER_H, PLAYER_W
from .level.types import TILE_SIZE, TileKind
from .net.client import OnlineClient
from .physics import InputState
from .session import GameSession, SessionEvent, TilePicked

TICK_RATE = 60
TICK_DT = 1.0 / TICK_RATE
# Cap catch-up work after a long frame (window drag, breakpoint).
MAX_TICKS_PER_FRAME = 5

BG_COLOR = rl.Color(10, 10, 26, 255)
GROUND_COLOR = rl.Color(42, 42, 74, 255)
PLATFORM_COLOR = rl.Color(60, 60, 120, 255)
LADDER_COLOR = rl.Color(180, 140, 60, 255)
NUMBER_COLOR = rl.Color(0, 224, 255, 255)
OPERATOR_COLOR = rl.Color(255, 51, 136, 255)
PLAYER_COLOR = rl.Color(0, 255, 136, 255)
OPPONENT_COLOR = rl.Color(255, 68, 68, 150)
TEXT_COLOR = rl.Color(230, 230, 230, 255)
ACCENT_COLOR = rl.Color(255, 204, 0, 255)
OVERLAY_COLOR = rl.Color(0, 0, 0, 170)

CAPTION_FRAMES = 60


def read_input() -> InputState:
    left = rl.is_key_down(rl.KeyboardKey.KEY_LEFT) or rl.is_key_down(rl.KeyboardKey.KEY_A)
    right = rl.is_key_down(rl.KeyboardKey.KEY_RIGHT) or rl.is_key_down(rl.KeyboardKey.KEY_D)
    up_arrow = rl.is_key_down(rl.KeyboardKey.KEY_UP)
    return InputState(
        left=bool(left),
        right=bool(right),
        up=bool(up_arrow or rl.is_key_down(rl.KeyboardKey.KEY_W)),
        down=bool(rl.is_key_down(rl.KeyboardKey.KEY_DOWN) or rl.is_key_down(rl.KeyboardKey.KEY_S)),
        jump=bool(rl.is_key_down(rl.KeyboardKey.KEY_SPACE) or up_arrow),
        restart=bool(rl.is_key_pressed(rl.KeyboardKey.KEY_R)),
    )


class PlayView:
    """Solo or online play. In online mode the `OnlineClient` owns the session."""

    def __init__(self, session: GameSession, *, client: OnlineClient | None = None, tier: int = 0) -> None:
        self._session = session
        self._client = client
        self._tier = int(tier)
        self._accum = 0.0
        self._frame = 0
        self._caption = ""
        self._caption_frames = 0

    def open(self) -> None:
        if self._client is None:
            self._session.start_local(self._tier)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def _handle_events(self, events: list[SessionEvent]) -> None:
        for event in events:
            if isinstance(event, TilePicked):
                self._caption = event.caption
                self._caption_frames = CAPTION_FRAMES

    def update(self, dt: float) -> None:
        self._frame += 1
        client = self._client
        if client is not None:
            client.update()

        if rl.is_key_pressed(rl.KeyboardKey.KEY_ENTER):
            self._confirm()

        inp = read_input()
        self._accum += float(dt)
        ticks = 0
        while self._accum >= TICK_DT and ticks < MAX_TICKS_PER_FRAME:
            self._accum -= TICK_DT
            ticks += 1
            if client is not None:
                self._handle_events(client.tick(inp))
            else:
                self._handle_events(self._session.tick(inp))
            # Edge-triggered intents fire once per frame.
            inp = InputState(left=inp.left, right=inp.right, up=inp.up, down=inp.down, jump=inp.jump)
        if ticks >= MAX_TICKS_PER_FRAME:
            self._accum = 0.0
        if self._caption_frames > 0:
            self._caption_frames -= 1

    def _confirm(self) -> None:
        session = self._session
        client = self._client
        if client is None:
            if session.won:
                session.next_stage()
            return
        if session.result is not None and not client.rematch_requested:
            client.request_rematch()

    def draw(self) -> None:
        rl.clear_background(BG_COLOR)
        level = self._session.level
        if level is not None:
            self._draw_level()
            self._draw_avatars()
        self._draw_hud()
        self._draw_overlay()

    def _draw_level(self) -> None:
        level = self._session.level
        assert level is not None
        for platform in level.platforms:
            color = GROUND_COLOR if platform.y >= GROUND_Y else PLATFORM_COLOR
            rl.draw_rectangle(int(platform.x), int(platform.y), int(platform.w), int(platform.h), color)
        for ladder in level.ladders:
            rl.draw_rectangle_lines(int(ladder.x), int(ladder.y), int(ladder.w), int(ladder.h), LADDER_COLOR)
            rung_y = ladder.y + 12.0
            while rung_y < ladder.bottom:
                rl.draw_line(int(ladder.x), int(rung_y), int(ladder.right), int(rung_y), LADDER_COLOR)
                rung_y += 24.0
        size = int(TILE_SIZE)
        for tile in level.tiles:
            if tile.collected:
                continue
            bob = math.sin(self._frame * 0.04 + tile.bob_phase) * 4.0
            color = NUMBER_COLOR if tile.kind is TileKind.NUMBER else OPERATOR_COLOR
            x = int(tile.x)
            y = int(tile.y + bob)
            rl.draw_rectangle(x, y, size, size, color)
            label = tile.label
            width = rl.measure_text(label, 24)
            rl.draw_text(label, x + (size - width) // 2, y + 8, 24, BG_COLOR)

    def _draw_avatars(self) -> None:
        opponent = self._session.opponent
        if opponent is not None:
            rl.draw_rectangle(int(opponent.x), int(opponent.y), int(PLAYER_W), int(PLAYER_H), OPPONENT_COLOR)
        avatar = self._session.avatar
        rl.draw_rectangle(int(avatar.x), int(avatar.y), int(PLAYER_W), int(PLAYER_H), PLAYER_COLOR)
        eye_x = int(avatar.x + (PLAYER_W - 10 if avatar.facing_right else 6))
        rl.draw_rectangle(eye_x, int(avatar.y + 8), 4, 6, BG_COLOR)
        if self._session.running:
            hint = self._session.calc.hint
            width = rl.measure_text(hint, 16)
            rl.draw_text(hint, int(avatar.x + PLAYER_W * 0.5) - width // 2, int(avatar.y) - 20, 16, ACCENT_COLOR)

    def _draw_hud(self) -> None:
        session = self._session
        level = session.level
        target = "?" if level is None else str(level.target)
        pending = session.calc.pending_operator
        rl.draw_text(f"TARGET {target}", 16, 12, 24, ACCENT_COLOR)
        rl.draw_text(f"VALUE {session.calc.display_value}", 220, 12, 24, TEXT_COLOR)
        rl.draw_text(f"OP {pending.value if pending is not None else '-'}", 400, 12, 24, TEXT_COLOR)
        rl.draw_text(f"STAGE {session.tier + 1}", 520, 12, 24, TEXT_COLOR)
        opponent = session.opponent
        if opponent is not None:
            op_text = opponent.pending_operator.value if opponent.pending_operator is not None else "-"
            value = opponent.current_value if opponent.calc_phase is not CalcPhase.INITIAL else 0
            rl.draw_text(f"RIVAL {value} {op_text}", 700, 12, 24, OPPONENT_COLOR)
        client = self._client
        if client is not None and client.room_id:
            rl.draw_text(f"ROOM {client.room_id}", 16, int(PLAY_HEIGHT) - 30, 20, TEXT_COLOR)
        if self._caption_frames > 0:
            rl.draw_text(self._caption, 16, 44, 20, ACCENT_COLOR)

    def _draw_overlay(self) -> None:
        session = self._session
        client = self._client
        title = ""
        message = ""
        if client is None:
            if session.won:
                title = "STAGE CLEAR!"
                message = "Press Enter for the next stage"
        elif not session.online or session.level is None:
            title = "WAITING"
            message = client.status or client.error_text
        elif session.result is not None:
            title = "YOU WIN!" if session.result == "win" else "YOU LOSE..."
            message = client.status if client.rematch_requested else "Press Enter for a rematch"
            if client.opponent_wants_rematch and not client.rematch_requested:
                message = "Opponent wants a rematch! Press Enter"
        elif not session.running:
            title = "STAGE CLEAR!" if session.won else "MATCH OVER"
            message = client.status
        if not title:
            return
        rl.draw_rectangle(0, 0, int(PLAY_WIDTH), int(PLAY_HEIGHT), OVERLAY_COLOR)
        width = rl.measure_text(title, 48)
        rl.draw_text(title, (int(PLAY_WIDTH) - width) // 2, int(PLAY_HEIGHT) // 2 - 60, 48, ACCENT_COLOR)
        width = rl.measure_text(message, 20)
        rl.draw_text(message, (int(PLAY_WIDTH) - width) // 2, int(PLAY_HEIGHT) // 2 + 10, 20, TEXT_COLOR)


def run_view(view: PlayView, *, title: str = "numclimb", fps: int = 60) -> None:
    """Run a Raylib window around `view` until it is closed."""
    rl.init_window(int(PLAY_WIDTH), int(PLAY_HEIGHT), title)
    rl.set_target_fps(fps)
    view.open()
    try:
        while not rl.window_should_close():
            view.update(rl.get_frame_time())
            rl.begin_drawing()
            view.draw()
            rl.end_drawing()
    finally:
        view.close()
        rl.close_window()
