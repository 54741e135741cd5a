from flask import Blueprint, jsonify
import logging

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)

HERO = {
    'badge': 'AI-Powered Rehabilitation',
    'headline': 'Smart Recovery, Better Results',
    'subheadline': (
        'Combine AI-powered exercise tracking with professional healthcare guidance. '
        'Track your progress, connect with experts, and recover faster with personalized rehabilitation plans.'
    ),
    'primary_action': 'Start Your Recovery',
    'secondary_action': 'Watch Demo',
}

FEATURES = [
    {'title': 'AI-Powered Chat', 'badge': 'Smart',
     'description': 'Real-time conversations with AI-enhanced healthcare professionals for immediate guidance and support.'},
    {'title': 'Exercise Tracking', 'badge': 'Precise',
     'description': 'Computer vision-based form analysis with real-time feedback to ensure proper technique and prevent injury.'},
    {'title': 'Progress Analytics', 'badge': 'Insights',
     'description': 'Comprehensive recovery tracking with beautiful visualizations to monitor your improvement over time.'},
    {'title': 'Professional Network', 'badge': 'Expert',
     'description': 'Connect with verified physiotherapists and doctors for expert guidance throughout your recovery.'},
    {'title': 'Personalized Plans', 'badge': 'Custom',
     'description': 'AI-generated rehabilitation programs tailored to your specific condition and recovery goals.'},
    {'title': 'Secure & Private', 'badge': 'Secure',
     'description': 'HIPAA-compliant platform ensuring your medical data and progress remain completely confidential.'},
    {'title': '24/7 Availability', 'badge': 'Always On',
     'description': 'Access your rehabilitation tools and AI assistance anytime, anywhere for continuous support.'},
    {'title': 'Goal Tracking', 'badge': 'Focused',
     'description': 'Set and achieve specific recovery milestones with intelligent goal setting and progress monitoring.'},
]


@main_bp.route('/')
def index():
    """Landing page content"""
    logger.info('Serving landing content')
    return jsonify({
        'status': 'success',
        'hero': HERO,
        'features': FEATURES
    })


@main_bp.route('/test', methods=['GET'])
def test_route():
    """Simple test route to verify Flask is working"""
    logger.info('Test route accessed')
    return jsonify({
        'status': 'success',
        'message': 'Flask server is running correctly'
    })
