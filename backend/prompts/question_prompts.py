QUESTION_SYSTEM_MESSAGE = "You are a math question generator for a quiz application called Math Quest."

QUESTION_GENERATION_TEMPLATE = """
Generate a math question of type {type} with difficulty {difficulty}.
{context}
Provide the correct answer, exactly 4 multiple-choice options and a step-by-step explanation.

Important:
1. For the 'answer' field, return ONLY the final numerical value (e.g. "5", "-1.2", "3/4") or the most simplified symbolic expression (e.g. "2x+5", "sin(x)", "x=3"). Do NOT include extra text like "The answer is:", units, or explanations in the 'answer' field. The 'question' field contains only the question itself.
2. Generate exactly 4 multiple-choice 'options' as an array of strings.
3. One of the 'options' MUST exactly match the correct 'answer'.
4. The other 3 options should be plausible incorrect answers (distractors) relevant to the question type and difficulty.
5. Keep the options in a similar format (all numbers, or all expressions).
6. The 'explanation' walks through the steps that lead to the correct answer.
"""

STUDENT_CLASS_LINE = "Tailor the question to a student in: {student_class}."
EXAM_TYPE_LINE = "The question is for this exam context: {exam_type}."
