"""End-to-end tests for the feature and template pipelines."""

import os
import threading

import numpy as np
import pytest

from locator.conftest import blob_image, textured_image
from locator import object_finder
from locator.object_finder import ObjectFinder, find_features, find_templates


HESSIAN = 5.0


def fail_on(monkeypatch, name, error):
    """Make loading the object called ``name`` raise ``error``."""
    real = object_finder.read_grayscale

    def read(path):
        if os.path.basename(path) == name:
            raise error
        return real(path)

    monkeypatch.setattr(object_finder, 'read_grayscale', read)


class TestFindFeatures:

    def test_object_identical_to_scene(self, scene_path):
        result = find_features(scene_path, [scene_path], HESSIAN, seed=0)

        (outcome,) = result['matches']
        assert outcome['template'] == 'scene.png'
        assert outcome['matchesCount'] >= 10
        assert 0.8 < outcome['confidence'] <= 1.0

        corners = [(c['x'], c['y']) for c in outcome['corners']]
        np.testing.assert_allclose(corners, [(0, 0), (192, 0), (192, 192), (0, 192)], atol=1e-3)

    def test_cropped_object_is_located(self, scene_array, scene_path, save_image):
        crop = scene_array[32:128, 48:144].copy()
        crop_path = save_image('crop.png', crop)

        (outcome,) = find_features(scene_path, [crop_path], HESSIAN, seed=0)['matches']

        corners = [(c['x'], c['y']) for c in outcome['corners']]
        np.testing.assert_allclose(corners, [(48, 32), (144, 32), (144, 128), (48, 128)], atol=3.0)
        assert 0.0 <= outcome['confidence'] <= 1.0

    def test_outcomes_follow_input_order(self, scene_path, save_image, missing_path):
        blank = save_image('blank.png', np.zeros((64, 64), dtype=np.uint8))
        blob = save_image('blob.png', blob_image((64, 64), center=(32, 32)))

        result = find_features(scene_path, [missing_path, scene_path, blank, blob], HESSIAN, seed=0)
        matches = result['matches']

        assert len(matches) == 4
        assert matches[0] == {'error': 'Failed to load object image'}
        assert matches[1]['template'] == 'scene.png'
        assert matches[2] == {'matchesCount': 0}
        assert set(matches[3]) == {'matchesCount'}
        assert matches[3]['matchesCount'] < 10

    def test_blank_scene_has_no_keypoints(self, save_image, scene_path):
        blank_scene = save_image('blank_scene.png', np.full((100, 100), 40, dtype=np.uint8))

        result = find_features(blank_scene, [scene_path], HESSIAN)

        assert result == {'matches': [{'matchesCount': 0}]}

    def test_confidence_always_in_unit_interval(self, scene_array, scene_path, save_image):
        paths = [
            scene_path,
            save_image('a.png', scene_array[:100, :120].copy()),
            save_image('b.png', textured_image((90, 90), seed=21)),
        ]

        for outcome in find_features(scene_path, paths, HESSIAN, 0.9, seed=3)['matches']:
            if 'confidence' in outcome:
                assert 0.0 <= outcome['confidence'] <= 1.0

    def test_workers_do_not_change_results(self, scene_array, scene_path, save_image):
        paths = [scene_path, save_image('crop.png', scene_array[16:112, 16:112].copy())] * 2

        serial = ObjectFinder(seed=5).find_features(scene_path, paths, HESSIAN)
        parallel = ObjectFinder(seed=5, workers=3).find_features(scene_path, paths, HESSIAN)

        assert serial == parallel

    def test_cancelled_objects_are_reported(self, scene_path):
        cancel = threading.Event()
        cancel.set()

        result = ObjectFinder().find_features(scene_path, [scene_path], HESSIAN, cancel_event=cancel)

        assert result == {'matches': [{'error': 'Cancelled'}]}

    def test_unexpected_failure_stays_with_its_object(self, monkeypatch, scene_path, save_image):
        huge = save_image('huge.png', np.zeros((8, 8), dtype=np.uint8))
        fail_on(monkeypatch, 'huge.png', MemoryError('cannot allocate'))

        result = find_features(scene_path, [huge, scene_path], HESSIAN, seed=0)

        assert result['matches'][0] == {'error': 'MemoryError: cannot allocate'}
        assert result['matches'][1]['template'] == 'scene.png'

    def test_scene_load_failure_aborts(self, missing_path, scene_path):
        with pytest.raises(IOError, match="Failed to load scene image"):
            find_features(missing_path, [scene_path], HESSIAN)

    @pytest.mark.parametrize('args', [
        (123, [], 400),
        ('scene.png', 'object.png', 400),
        ('scene.png', ['a.png', 7], 400),
        ('scene.png', [], '400'),
        ('scene.png', [], 400, None),
    ])
    def test_invalid_arguments(self, args):
        with pytest.raises(TypeError, match="Arguments"):
            find_features(*args)


class TestFindTemplates:

    def test_all_zero_scene_and_template(self, save_image):
        scene = save_image('zeros.png', np.zeros((100, 100), dtype=np.uint8))
        template = save_image('tpl.png', np.zeros((10, 10), dtype=np.uint8))

        (outcome,) = find_templates(scene, [template], 0, 0)['results']

        assert outcome['template'] == 'tpl.png'
        assert outcome['maxConfidence'] == 0
        assert len(outcome['matches']) == 91 * 91
        assert all(m['confidence'] == 0 for m in outcome['matches'])
        assert outcome['matches'][0] == {'x': 0, 'y': 0, 'width': 10, 'height': 10, 'confidence': 0.0}

    def test_identical_subregion_squared_difference(self, scene_array, scene_path, save_image):
        template = save_image('part.png', scene_array[50:80, 60:100].copy())

        (outcome,) = find_templates(scene_path, [template], 0, 0)['results']

        assert outcome['maxConfidence'] == 0
        assert [(m['x'], m['y']) for m in outcome['matches']] == [(60, 50)]

    def test_per_object_errors(self, scene_path, save_image, missing_path):
        too_big = save_image('big.png', np.zeros((200, 50), dtype=np.uint8))
        ok = save_image('ok.png', textured_image((20, 20), seed=2))

        results = find_templates(scene_path, [too_big, missing_path, ok], 5, 0.95)['results']

        assert results[0] == {'template': 'big.png',
                              'error': 'Scene image is smaller than template image'}
        assert results[1] == {'template': 'does_not_exist.png',
                              'error': 'Failed to load object image'}
        assert set(results[2]) == {'template', 'maxConfidence', 'matches'}

    def test_correlation_finds_crop(self, scene_array, scene_path, save_image):
        template = save_image('crop.png', scene_array[100:140, 10:50].copy())

        (outcome,) = find_templates(scene_path, [template], 5, 0.999)['results']

        assert outcome['maxConfidence'] == pytest.approx(1.0)
        assert [(m['x'], m['y'], m['width'], m['height']) for m in outcome['matches']] == [(10, 100, 40, 40)]

    def test_scene_load_failure_aborts(self, missing_path, scene_path):
        with pytest.raises(IOError):
            find_templates(missing_path, [scene_path], 5, 0.8)

    def test_unknown_method(self, scene_path):
        with pytest.raises(ValueError, match="Unknown template matching method"):
            find_templates(scene_path, [scene_path], 9, 0.8)

    def test_invalid_arguments(self, scene_path):
        with pytest.raises(TypeError):
            find_templates(scene_path, [scene_path], '5', 0.8)
        with pytest.raises(TypeError):
            find_templates(scene_path, scene_path, 5, 0.8)

    def test_workers_preserve_order(self, scene_array, scene_path, save_image):
        paths = [save_image(f't{i}.png', scene_array[i * 10:i * 10 + 16, 0:16].copy())
                 for i in range(6)]

        results = ObjectFinder(workers=4).find_templates(scene_path, paths, 0, 0)['results']

        assert [r['template'] for r in results] == [f't{i}.png' for i in range(6)]
        assert [r['matches'][0]['y'] for r in results] == [i * 10 for i in range(6)]

    def test_unexpected_failure_stays_with_its_object(self, monkeypatch, scene_array, scene_path,
                                                      save_image):
        huge = save_image('huge.png', np.zeros((8, 8), dtype=np.uint8))
        part = save_image('part.png', scene_array[0:16, 0:16].copy())
        fail_on(monkeypatch, 'huge.png', RuntimeError('boom'))

        results = ObjectFinder(workers=2).find_templates(scene_path, [huge, part], 0, 0)['results']

        assert results[0] == {'template': 'huge.png', 'error': 'RuntimeError: boom'}
        assert results[1]['matches'][0]['confidence'] == 0.0
