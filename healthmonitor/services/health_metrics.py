"""
Derived health metrics for the profile dashboard
"""

ACTIVITY_MULTIPLIERS = {
    'sedentary': 1.2,
    'lightly_active': 1.375,
    'moderately_active': 1.55,
    'very_active': 1.725,
    'super_active': 1.9,
}

BMI_CATEGORIES = (
    (18.5, 'Underweight'),
    (25.0, 'Normal'),
    (30.0, 'Overweight'),
)


def calculate_bmi(height_cm, weight_kg):
    """BMI rounded to one decimal, or None without both measurements"""
    if not height_cm or not weight_kg:
        return None
    height_m = height_cm / 100
    return round(weight_kg / (height_m * height_m), 1)


def bmi_category(bmi):
    if bmi is None:
        return None
    for upper, label in BMI_CATEGORIES:
        if bmi < upper:
            return label
    return 'Obese'


def calculate_calorie_needs(weight, height, age, gender, activity_level=None):
    """Daily calories: Harris-Benedict BMR times the activity multiplier"""
    if not weight or not height or age is None or not gender:
        return None

    if gender == 'male':
        bmr = 88.362 + (13.397 * weight) + (4.799 * height) - (5.677 * age)
    else:
        bmr = 447.593 + (9.247 * weight) + (3.098 * height) - (4.330 * age)

    multiplier = ACTIVITY_MULTIPLIERS.get(activity_level, 1.2)
    return round(bmr * multiplier)


def profile_insights(profile, weight_history=()):
    bmi = calculate_bmi(profile.height, profile.weight)
    weights = [record.weight for record in weight_history]
    return {
        'bmi': bmi,
        'bmi_category': bmi_category(bmi),
        'calorie_needs': calculate_calorie_needs(
            profile.weight, profile.height, profile.age, profile.gender, profile.activity_level
        ),
        'activity_level': profile.activity_level,
        'weight_trend': [record.to_dict() for record in weight_history],
        'weight_change': round(weights[-1] - weights[0], 1) if len(weights) > 1 else None
    }
