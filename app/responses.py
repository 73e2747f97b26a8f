from flask import jsonify


def form_error_response(form):
    """400 response listing the form's field errors."""
    return jsonify({'success': False, 'error': 'Please correct the errors in the form.',
                    'errors': form.errors}), 400


def action_response(result, created=False):
    """Turns an action result into a JSON response; failures answer 400."""
    if not result['success']:
        return jsonify(result), 400
    return jsonify(result), 201 if created else 200
