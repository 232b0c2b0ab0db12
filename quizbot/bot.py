import discord
from discord.ext import commands
import logging
import asyncio
import io
from typing import Dict, Optional, Set, Tuple
import os
from pathlib import Path

from .data_manager import DataManager
from .config_manager import ConfigManager
from .quiz_controller import QuizController, SessionState
from .result_reporter import HostShell, ResultReporter

logger = logging.getLogger(__name__)

OPTION_LABELS = "ABCDEFGHIJKLMNOPQRSTUVWX"

# Discord rejects longer message content
MESSAGE_LIMIT = 2000

MAX_SESSIONS = 500


class DiscordHostShell(HostShell):
    """Hosting shell that posts result payloads to a Discord channel."""

    def __init__(self, channel: discord.abc.Messageable, player_name: str = ""):
        self.channel = channel
        self.player_name = player_name
        self._pending: Set[asyncio.Task] = set()

    def ready(self) -> None:
        logger.debug(f"Quiz ready for {self.player_name or 'player'}")

    def expand(self) -> None:
        # Discord messages have no viewport to expand
        pass

    def send_data(self, payload: str) -> None:
        """Schedule the payload post on the running event loop."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._post(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, payload: str) -> None:
        header = f"📨 Quiz result for {self.player_name}" if self.player_name else "📨 Quiz result"
        message = f"{header}\n```json\n{payload}\n```"
        try:
            if len(message) <= MESSAGE_LIMIT:
                await self.channel.send(message)
            else:
                result_file = discord.File(io.BytesIO(payload.encode('utf-8')), filename="quiz_result.json")
                await self.channel.send(header, file=result_file)
        except discord.HTTPException as e:
            logger.error(f"Failed to post quiz result: {e}")


class QuestionView(discord.ui.View):
    """Answer buttons for the current question, plus a restart button."""

    def __init__(self, bot: "QuizBot", controller: QuizController, owner_id: int):
        super().__init__(timeout=None)
        self.bot = bot
        self.controller = controller
        self.owner_id = owner_id
        # Buttons answer only the question shown in this session
        self.session = controller.session

        question = controller.get_current_question()
        self.question_id = question.id if question is not None else None
        if question is not None and not controller.is_finished():
            for label, option in zip(OPTION_LABELS, question.options):
                button = discord.ui.Button(label=label, style=discord.ButtonStyle.primary)
                button.callback = self._make_answer_callback(option.id)
                self.add_item(button)

        restart_label = "Take it again" if controller.is_finished() else "Restart"
        restart_button = discord.ui.Button(label=restart_label, style=discord.ButtonStyle.secondary)
        restart_button.callback = self.handle_restart
        self.add_item(restart_button)

    def _make_answer_callback(self, option_id: str):
        async def callback(interaction: discord.Interaction):
            await self.handle_answer(interaction, option_id)
        return callback

    async def _check_owner(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == self.owner_id:
            return True
        await interaction.response.send_message(
            "This quiz belongs to someone else. Use `/quiz` to start your own.",
            ephemeral=True
        )
        return False

    async def handle_answer(self, interaction: discord.Interaction, option_id: str):
        """Record the chosen option and show the next question or the result."""
        if not await self._check_owner(interaction):
            return

        if self.controller.is_finished():
            await interaction.response.send_message("This quiz is already finished.", ephemeral=True)
            return

        question = self.controller.get_current_question()
        if (self.controller.session is not self.session or question is None
                or question.id != self.question_id):
            logger.info(f"Ignoring stale answer '{option_id}' for question {self.question_id}")
            await interaction.response.send_message(
                "This question was already answered. Use the latest quiz message.",
                ephemeral=True
            )
            return

        self.controller.submit_answer(option_id)

        embed, view = self.bot.render_session(self.controller, self.owner_id)
        await interaction.response.edit_message(embed=embed, view=view)

    async def handle_restart(self, interaction: discord.Interaction):
        """Draw a fresh set of questions and show the first one."""
        if not await self._check_owner(interaction):
            return

        self.controller.restart()
        embed, view = self.bot.render_session(self.controller, self.owner_id)
        await interaction.response.edit_message(embed=embed, view=view)


class QuizBot(commands.Bot):
    """Discord bot presenting sampled multiple-choice quizzes"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None

        # One session per (channel id, user id)
        self.sessions: Dict[Tuple[int, int], QuizController] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                config_errors = self.config_manager.apply_config(self.app_config)
                for error in config_errors:
                    logger.error(f"Configuration error: {error}")

            self.data_manager = DataManager(self.config_manager.get_bank_directory())
            self.load_bank_data()
            self.log_startup_diagnostics()

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def load_bank_data(self):
        """Load question banks from the configured directory"""
        self.data_manager.bank_directory = Path(self.config_manager.get_bank_directory())
        loaded_banks = self.data_manager.load_bank_files()
        logger.info(f"Loaded {len(loaded_banks)} question banks from {self.data_manager.bank_directory}")

    def log_startup_diagnostics(self):
        """Log bank loading problems and configuration health for the operator"""
        loading_summary = self.data_manager.get_loading_summary()
        for error in loading_summary['errors']:
            logger.warning(f"Bank loading error: {error}")
        for warning in loading_summary['warnings']:
            logger.warning(f"Bank warning: {warning}")
        if loading_summary['fallback_active']:
            logger.warning("Running with the fallback bank, no bank file could be loaded")

        bank_name = self.config_manager.get_bank_name()
        if bank_name is not None and not self.data_manager.bank_exists(bank_name):
            logger.error(f"Configured bank '{bank_name}' is not loaded, "
                         f"available: {', '.join(loading_summary['available_banks']) or 'none'}")

        health_check = self.config_manager.get_configuration_health_check()
        for error in health_check['errors']:
            logger.error(f"Configuration error: {error}")
        for warning in health_check['warnings']:
            logger.warning(f"Configuration warning: {warning}")

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quiz", description="Start a quiz, or show the one you are taking")
        async def quiz_command(interaction: discord.Interaction):
            await self.handle_quiz(interaction)

        @self.tree.command(name="restart", description="Restart your quiz with a fresh set of questions")
        async def restart_command(interaction: discord.Interaction):
            await self.handle_restart(interaction)

        @self.tree.command(name="status", description="Show your quiz progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="set_questions", description="Set the number of questions for new quizzes")
        async def set_questions_command(interaction: discord.Interaction, number: int):
            await self.handle_set_questions(interaction, number)

        @self.tree.command(name="set_threshold", description="Set how many correct answers are needed to pass")
        async def set_threshold_command(interaction: discord.Interaction, correct: int):
            await self.handle_set_threshold(interaction, correct)

        @self.tree.command(name="reset_settings", description="Restore the quiz settings the bot started with")
        async def reset_settings_command(interaction: discord.Interaction):
            await self.handle_reset_settings(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    def create_reporter(self, player_name: str) -> ResultReporter:
        """
        Build the result reporter for a new session.

        Without a reachable results channel the reporter has no shell and
        reporting is skipped.
        """
        channel_id = self.config_manager.get_results_channel_id()
        if channel_id is None:
            return ResultReporter()

        channel = self.get_channel(channel_id)
        if channel is None:
            logger.warning(f"Results channel {channel_id} not found, result reporting disabled")
            return ResultReporter()

        return ResultReporter(DiscordHostShell(channel, player_name))

    def get_or_create_controller(self, channel_id: int, user: discord.abc.User) -> QuizController:
        """
        Get the caller's session in this channel, starting one if needed.

        Sessions without questions are handed back but not kept, so the next
        call samples again from whatever bank is loaded then.
        """
        key = (channel_id, user.id)
        controller = self.sessions.get(key)
        if controller is None:
            bank_name = self.config_manager.get_bank_name()
            if bank_name is not None and not self.data_manager.bank_exists(bank_name):
                logger.warning(f"Configured bank '{bank_name}' is not loaded")
            bank = self.data_manager.get_bank(bank_name) or ()
            controller = QuizController(
                bank,
                settings=self.config_manager.get_quiz_settings(),
                reporter=self.create_reporter(getattr(user, 'display_name', str(user.id)))
            )
            if not controller.has_questions():
                return controller

            self.sessions[key] = controller
            self.prune_sessions()
            logger.info(f"Created quiz session for user {user.id} in channel {channel_id}")
        return controller

    def prune_sessions(self):
        """Evict sessions beyond MAX_SESSIONS, finished ones first, then the oldest."""
        while len(self.sessions) > MAX_SESSIONS:
            finished = next((key for key, controller in self.sessions.items() if controller.is_finished()), None)
            key = finished if finished is not None else next(iter(self.sessions))
            del self.sessions[key]
            logger.debug(f"Evicted quiz session {key}")

    def render_session(self, controller: QuizController, owner_id: int) -> Tuple[discord.Embed, Optional[QuestionView]]:
        """Build the embed and buttons for the session's current state."""
        state = controller.get_session_state()

        if state == SessionState.NO_QUESTIONS:
            embed = discord.Embed(
                title="❌ Not Enough Questions",
                description="The question bank has no questions. Add questions to a bank file and try again.",
                color=0xff0000
            )
            return embed, None

        progress = controller.get_session_progress()

        if state == SessionState.FINISHED:
            passed = controller.is_passed()
            embed = discord.Embed(
                title="🏁 Quiz Complete",
                description=f"Correct answers: **{progress['correct']}** of {progress['total_questions']}",
                color=0x00ff00 if passed else 0xff0000
            )
            embed.add_field(
                name="Result",
                value="✅ Passed" if passed else f"❌ Failed (need {progress['pass_threshold']})",
                inline=False
            )
            return embed, QuestionView(self, controller, owner_id)

        question = controller.require_current_question()
        embed = discord.Embed(
            title=f"Question {progress['current_question']} / {progress['total_questions']}",
            description=question.text,
            color=0x0099ff
        )
        embed.add_field(
            name="Options",
            value="\n".join(
                f"**{label}.** {option.text}"
                for label, option in zip(OPTION_LABELS, question.options)
            ),
            inline=False
        )
        embed.set_footer(text=f"Correct so far: {progress['correct']}")
        return embed, QuestionView(self, controller, owner_id)

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 Quiz Bot Commands",
                description="Answer a random set of questions from the bank using the buttons",
                color=0x00ff00
            )
            help_embed.add_field(
                name="🎮 Quiz",
                value=(
                    "`/quiz` - Start a quiz or show the one you are taking\n"
                    "`/restart` - Start over with a fresh set of questions\n"
                    "`/status` - Show your progress"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/set_questions <number>` - Questions per new quiz\n"
                    "`/set_threshold <correct>` - Correct answers needed to pass\n"
                    "`/reset_settings` - Restore the settings the bot started with"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )

            health_check = self.config_manager.get_configuration_health_check()
            if not health_check['healthy']:
                help_embed.add_field(
                    name="⚠️ Configuration Issues",
                    value="\n".join(health_check['errors']),
                    inline=False
                )

            loading_summary = self.data_manager.get_loading_summary()
            bank_issues = loading_summary['errors'] + loading_summary['warnings']
            if bank_issues:
                issue_text = "\n".join(bank_issues[:3])
                if len(bank_issues) > 3:
                    issue_text += f"\n... and {len(bank_issues) - 3} more"
                help_embed.add_field(
                    name="⚠️ Bank Issues",
                    value=issue_text[:1024],
                    inline=False
                )

            available_banks = loading_summary['available_banks']
            help_embed.add_field(
                name="📚 Question Banks",
                value=f"```\n{', '.join(available_banks) if available_banks else 'No banks loaded'}\n```",
                inline=False
            )

            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help", "❌ Help Error")

    async def handle_quiz(self, interaction: discord.Interaction):
        """Handle /quiz command"""
        try:
            controller = self.get_or_create_controller(interaction.channel_id, interaction.user)
            embed, view = self.render_session(controller, interaction.user.id)

            if view is None:
                await interaction.response.send_message(embed=embed)
            else:
                await interaction.response.send_message(embed=embed, view=view)

        except discord.HTTPException as e:
            logger.error(f"Error in quiz command: {e}")
            await self.send_error_response(interaction, "Failed to show the quiz", "❌ Quiz Error")

    async def handle_restart(self, interaction: discord.Interaction):
        """Handle /restart command"""
        try:
            controller = self.get_or_create_controller(interaction.channel_id, interaction.user)
            controller.restart()
            embed, view = self.render_session(controller, interaction.user.id)

            if view is None:
                await interaction.response.send_message(embed=embed)
            else:
                await interaction.response.send_message(embed=embed, view=view)

        except discord.HTTPException as e:
            logger.error(f"Error in restart command: {e}")
            await self.send_error_response(interaction, "Failed to restart the quiz", "❌ Restart Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            controller = self.sessions.get((interaction.channel_id, interaction.user.id))
            if controller is None:
                await self.send_info_response(interaction, "You have no quiz here. Use `/quiz` to start one.")
                return

            validation = controller.validate_session_state()
            if not validation['valid']:
                logger.error(f"Inconsistent quiz session for user {interaction.user.id}: {validation['issues']}")

            embed = discord.Embed(
                title="📊 Quiz Status",
                description=controller.get_session_status_summary(),
                color=0x6699ff
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Error in status command: {e}")
            await self.send_error_response(interaction, "Failed to get quiz status", "❌ Status Error")

    async def handle_set_questions(self, interaction: discord.Interaction, number: int):
        """Handle /set_questions command"""
        try:
            result = self.config_manager.set_question_count(number)
            if not result['success']:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
                return

            embed = discord.Embed(
                title="✅ Question Count Updated",
                description=f"New quizzes will draw **{number}** questions",
                color=0x00ff00
            )

            bank_name = self.config_manager.get_bank_name() or next(iter(self.data_manager.get_available_banks()), None)
            if bank_name is not None:
                available = self.data_manager.get_question_count(bank_name)
                if available < number:
                    embed.add_field(
                        name="⚠️ Small Bank",
                        value=f"Bank **{bank_name}** has only {available} questions, all of them will be used",
                        inline=False
                    )

            health_check = self.config_manager.get_configuration_health_check()
            if not health_check['healthy']:
                embed.add_field(
                    name="⚠️ Configuration Issues",
                    value="\n".join(health_check['errors']),
                    inline=False
                )

            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in set_questions command: {e}")
            await self.send_error_response(interaction, "Failed to set question count", "❌ Configuration Error")

    async def handle_set_threshold(self, interaction: discord.Interaction, correct: int):
        """Handle /set_threshold command"""
        try:
            result = self.config_manager.set_pass_threshold(correct)
            if not result['success']:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
                return

            message = result['user_message']
            health_check = self.config_manager.get_configuration_health_check()
            if not health_check['healthy']:
                message += "\n" + "\n".join(health_check['errors'])

            await interaction.response.send_message(message)

        except discord.HTTPException as e:
            logger.error(f"Error in set_threshold command: {e}")
            await self.send_error_response(interaction, "Failed to set pass threshold", "❌ Configuration Error")

    async def handle_reset_settings(self, interaction: discord.Interaction):
        """Handle /reset_settings command"""
        try:
            self.config_manager.reset_to_defaults()
            config_errors = self.config_manager.apply_config(self.app_config) if self.app_config else []
            for error in config_errors:
                logger.error(f"Configuration error: {error}")

            embed = discord.Embed(
                title="🔄 Settings Restored",
                description=f"```\n{self.config_manager.get_settings_summary()}\n```",
                color=0x00ff00
            )
            embed.set_footer(text="Quizzes already running keep their settings")
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in reset_settings command: {e}")
            await self.send_error_response(interaction, "Failed to reset settings", "❌ Configuration Error")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Discord Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
