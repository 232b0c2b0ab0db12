"""
Discord bot that runs multiple-choice quizzes sampled from a question bank.
"""
